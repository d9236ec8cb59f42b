"""FastAPI integration for route access."""

from .dependencies import (
    RouteAccessUser,
    client_ip,
    install_route_access_error_handlers,
    request_validation_exception_handler,
    require_route_access,
    route_access_exception_handler,
)
from .router import (
    RouteAccessSendRequest,
    RouteAccessVerifyRequest,
    create_route_access_router,
)

__all__: list[str] = [
    # Router
    "create_route_access_router",
    "RouteAccessSendRequest",
    "RouteAccessVerifyRequest",
    # Dependencies
    "RouteAccessUser",
    "client_ip",
    "require_route_access",
    # Error handling
    "install_route_access_error_handlers",
    "request_validation_exception_handler",
    "route_access_exception_handler",
]
