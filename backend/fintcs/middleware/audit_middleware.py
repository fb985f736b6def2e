"""Middleware that logs read-access events for sensitive endpoints.

Intercepts successful GET requests to configurable route prefixes and
fires a ``READ_ACCESS`` audit event.  The event is written asynchronously
(fire-and-forget) so it does not slow down the response.

The caller is read from ``request.state.audit_principal``, which is set by
``get_principal()`` in ``middleware/auth.py``.
"""

from __future__ import annotations

import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from fintcs.services.audit_service import AuditEventCategory, AuditWriter, make_event

logger = logging.getLogger(__name__)


class AuditReadAccessMiddleware(BaseHTTPMiddleware):
    """Log read-access events for sensitive data views."""

    def __init__(
        self,
        app,
        writer: AuditWriter,
        prefixes: list[str],
    ) -> None:
        super().__init__(app)
        self.writer = writer
        self.prefixes = prefixes

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.method != "GET":
            return await call_next(request)

        path = request.url.path
        if not any(path.startswith(p) for p in self.prefixes):
            return await call_next(request)

        response = await call_next(request)

        if 200 <= response.status_code < 300:
            principal = getattr(request.state, "audit_principal", None)
            self.writer.fire_and_forget(make_event(
                f"read.{path.strip('/').replace('/', '.')}",
                category=AuditEventCategory.READ_ACCESS,
                principal=principal,
                resource_type="endpoint",
                resource_id=path,
                details={
                    "query_params": dict(request.query_params),
                    "status_code": response.status_code,
                },
                ip_address=request.client.host if request.client else None,
            ))

        return response
