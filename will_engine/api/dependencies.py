"""FastAPI dependencies: caller identity and services from the app container."""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from ..core.container import ServiceContainer
from ..services.check_in_service import CheckInService
from ..services.circle_service import CircleService
from ..services.review_gate import ReviewGate
from ..services.will_service import WillService


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


async def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> str:
    """Caller identity, set by the authenticating proxy in front of this service."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return user_id


def get_will_service(container: ServiceContainer = Depends(get_container)) -> WillService:
    return container.get("wills")


def get_circle_service(container: ServiceContainer = Depends(get_container)) -> CircleService:
    return container.get("circles")


def get_check_in_service(
    container: ServiceContainer = Depends(get_container),
) -> CheckInService:
    return container.get("check_ins")


def get_review_gate(container: ServiceContainer = Depends(get_container)) -> ReviewGate:
    return container.get("review_gate")


def get_clock(container: ServiceContainer = Depends(get_container)):
    return container.get("clock")
