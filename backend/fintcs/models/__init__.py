from fintcs.models.loan import Loan
from fintcs.models.member import Member
from fintcs.models.monthly_demand import MonthlyDemand
from fintcs.models.society import Society
from fintcs.models.user import User
from fintcs.models.voucher import Voucher

__all__ = [
    # Tenant boundary
    "Society",
    # Users
    "User",
    # Society ledgers
    "Member",
    "Loan",
    "Voucher",
    "MonthlyDemand",
]
