"""
Tests 1-6: Elevation Guard

A principal may only grant or touch roles strictly below its own.
"""
import pytest

from fintcs.authz import DenyReason, Role, check_elevation

from conftest import make_principal

NON_SUPER = [Role.SOCIETY_ADMIN, Role.REGULAR_USER, Role.MEMBER]


class TestElevationGuard:

    @pytest.mark.parametrize("target", list(Role))
    def test_01_super_admin_grants_anything(self, super_admin, target):
        assert check_elevation(super_admin, target).permitted

    @pytest.mark.parametrize("caller", NON_SUPER)
    @pytest.mark.parametrize("target", list(Role))
    def test_02_allowed_iff_strictly_outranks(self, caller, target):
        """Monotonic in rank: permitted exactly when caller.rank > target.rank."""
        decision = check_elevation(make_principal(caller, "S1"), target)
        assert decision.permitted == (caller.rank > target.rank)
        if not decision.permitted:
            assert decision.reason is DenyReason.SELF_ELEVATION_BLOCKED

    def test_03_society_admin_cannot_mint_peers(self, s1_admin):
        """SocietyAdmin may not create another SocietyAdmin or a SuperAdmin."""
        assert not check_elevation(s1_admin, Role.SOCIETY_ADMIN).permitted
        assert not check_elevation(s1_admin, Role.SUPER_ADMIN).permitted
        assert check_elevation(s1_admin, Role.REGULAR_USER).permitted
        assert check_elevation(s1_admin, Role.MEMBER).permitted

    def test_04_string_roles_accepted(self, s1_admin):
        """Stored role strings, including the legacy alias, are understood."""
        assert check_elevation(s1_admin, "User").permitted
        assert check_elevation(s1_admin, "RegularUser").permitted
        assert not check_elevation(s1_admin, "SocietyAdmin").permitted

    def test_05_unknown_target_denied(self, s1_admin):
        """A role that cannot be ranked is never granted."""
        decision = check_elevation(s1_admin, "Auditor")
        assert not decision.permitted
        assert decision.reason is DenyReason.SELF_ELEVATION_BLOCKED

    def test_06_member_grants_nothing(self, s1_member):
        for target in Role:
            assert not check_elevation(s1_member, target).permitted
