"""Per-request correlation and the audit line written when a request finishes.

Route handlers run in a copied context, so anything they learn (the caller,
the movement they wrote) travels back to the middleware on ``request.state``
rather than through context variables.
"""

from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from typing import Any
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
principal_ctx_var: ContextVar[str | None] = ContextVar("principal_id", default=None)
logger = logging.getLogger("stockledger.request")

QUIET_PATHS = frozenset({"/health", "/metrics"})
WRITE_METHODS = frozenset({"POST", "PATCH", "PUT", "DELETE"})


def tag_movement(request: Request, kind: str, reference: str | None, **refs: Any) -> None:
    """Attach the identifiers of a committed ledger write to the request's audit line."""
    if reference is None:
        return
    movement = {"movement": kind, "reference": reference}
    movement.update({key: value for key, value in refs.items() if value is not None})
    request.state.movement = movement


def _caller(request: Request) -> dict[str, Any]:
    principal = getattr(request.state, "principal", None)
    if principal is None:
        return {}
    return {
        "principal": f"{principal.scheme}:{principal.subject}",
        "role": principal.role,
        "actor": principal.actor,
    }


class RequestContextMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, header_name: str = "X-Request-ID") -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self.header_name) or str(uuid4())
        token = request_id_ctx_var.set(request_id)
        request.state.request_id = request_id
        start = time.perf_counter()
        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * 1000
            response.headers[self.header_name] = request_id
            if request.url.path not in QUIET_PATHS:
                self._audit(request, response.status_code, duration_ms)
        finally:
            request_id_ctx_var.reset(token)
        return response

    def _audit(self, request: Request, status_code: int, duration_ms: float) -> None:
        data: dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
            "status": status_code,
            "duration_ms": round(duration_ms, 2),
        }
        data.update(_caller(request))
        data.update(getattr(request.state, "movement", None) or {})

        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400 and request.method in WRITE_METHODS:
            # rejected writes: stock, return bound, duplicate receipt
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(level, "request.completed", extra={"extra_data": data})
