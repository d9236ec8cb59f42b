"""FastAPI dependencies and error handlers for route access.

Provides the guard dependency for protected endpoints and the mapping of
``RouteAccessError`` to the JSON error envelope.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from fastapi import Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ...exceptions import RouteAccessError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from fastapi import FastAPI

    from ...service import RouteEmailOtpService


@dataclass(frozen=True)
class RouteAccessUser:
    """The authenticated user as seen by the route access endpoints.

    Produced by the host application's ``get_current_user`` dependency.
    """

    id: str
    email: str


def client_ip(request: Request) -> str | None:
    """First ``X-Forwarded-For`` hop, else ``X-Real-IP``."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip() or None
    return request.headers.get("x-real-ip") or None


def require_route_access(
    service: RouteEmailOtpService,
    route_key: str,
    get_current_user: Callable[..., Any],
) -> Callable[..., Awaitable[RouteAccessUser]]:
    """Create a dependency that requires a valid grant for ``route_key``.

    Args:
        service: The shared route email OTP service.
        route_key: Protected route this dependency guards.
        get_current_user: Host dependency resolving the authenticated user.

    Returns:
        Dependency function yielding the current user.

    Example:
        ```python
        guard = require_route_access(service, "comparison", get_current_user)

        @router.get("/comparison/personas")
        async def list_personas(user = Depends(guard)):
            ...
        ```
    """

    async def dependency(
        user: RouteAccessUser = Depends(get_current_user),  # noqa: B008
    ) -> RouteAccessUser:
        await service.assert_route_access_for_user(user.id, route_key)
        return user

    return dependency


def _error_envelope(
    status: int, code: str, message: str, details: Any = None
) -> JSONResponse:
    error: dict[str, Any] = {"status": status, "code": code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse({"success": False, "error": error}, status_code=status)


async def route_access_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Render a ``RouteAccessError`` with its own status code."""
    if not isinstance(exc, RouteAccessError):
        raise exc
    payload = exc.to_dict()
    return _error_envelope(
        exc.status_code, payload["code"], payload["message"], payload.get("details")
    )


async def request_validation_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Answer malformed payloads with a 400 ``BAD_REQUEST``."""
    message = "Invalid payload"
    if isinstance(exc, RequestValidationError) and exc.errors():
        message = str(exc.errors()[0].get("msg", message))
    return _error_envelope(400, "BAD_REQUEST", message)


def install_route_access_error_handlers(app: FastAPI) -> None:
    """Register the route access error handlers on ``app``."""
    app.add_exception_handler(RouteAccessError, route_access_exception_handler)
    app.add_exception_handler(
        RequestValidationError, request_validation_exception_handler
    )


__all__: list[str] = [
    "RouteAccessUser",
    "client_ip",
    "install_route_access_error_handlers",
    "request_validation_exception_handler",
    "require_route_access",
    "route_access_exception_handler",
]
