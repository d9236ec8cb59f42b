"""HTTP endpoints for the step-up verification UI."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from .dependencies import RouteAccessUser, client_ip

if TYPE_CHECKING:
    from collections.abc import Callable

    from ...service import RouteEmailOtpService


class RouteAccessSendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    route_key: str = Field(alias="routeKey", min_length=1)


class RouteAccessVerifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    route_key: str = Field(alias="routeKey", min_length=1)
    code: str


def _ok(result: BaseModel) -> dict[str, Any]:
    return {"success": True, "data": result.model_dump(mode="json", by_alias=True)}


def create_route_access_router(
    service: RouteEmailOtpService,
    get_current_user: Callable[..., Any],
    *,
    prefix: str = "/route-access",
) -> APIRouter:
    """Build the status / send / verify router.

    Args:
        service: The shared route email OTP service.
        get_current_user: Host dependency returning a :class:`RouteAccessUser`.
        prefix: URL prefix for all three endpoints.

    Domain errors are raised as ``RouteAccessError``; register
    ``install_route_access_error_handlers`` on the app to render them.
    """
    router = APIRouter(prefix=prefix, tags=["route-access"])

    @router.get("/status")
    async def get_status(
        route_key: str = Query(alias="routeKey", min_length=1),
        user: RouteAccessUser = Depends(get_current_user),  # noqa: B008
    ) -> dict[str, Any]:
        result = await service.get_route_access_status_for_user(user.id, route_key)
        return _ok(result)

    @router.post("/email-otp/send")
    async def send_code(
        payload: RouteAccessSendRequest,
        request: Request,
        user: RouteAccessUser = Depends(get_current_user),  # noqa: B008
    ) -> dict[str, Any]:
        result = await service.send_route_email_otp_for_user(
            owner_user_id=user.id,
            email=user.email,
            route_key=payload.route_key,
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
        return _ok(result)

    @router.post("/email-otp/verify")
    async def verify_code(
        payload: RouteAccessVerifyRequest,
        user: RouteAccessUser = Depends(get_current_user),  # noqa: B008
    ) -> dict[str, Any]:
        result = await service.verify_route_email_otp_for_user(
            owner_user_id=user.id,
            route_key=payload.route_key,
            code=payload.code,
        )
        return _ok(result)

    return router


__all__: list[str] = [
    "RouteAccessSendRequest",
    "RouteAccessVerifyRequest",
    "create_route_access_router",
]
