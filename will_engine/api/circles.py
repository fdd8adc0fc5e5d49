import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ..services.circle_service import CircleService
from .dependencies import get_circle_service, get_current_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/circles", tags=["circles"])


class JoinCircleRequest(BaseModel):
    invite_code: str = Field(alias="inviteCode")

    class Config:
        populate_by_name = True


class CircleResponse(BaseModel):
    id: int
    invite_code: str = Field(alias="inviteCode")
    created_by: str = Field(alias="createdBy")
    members: List[str]
    member_count: int = Field(alias="memberCount")

    class Config:
        populate_by_name = True


def _circle_response(view) -> CircleResponse:
    return CircleResponse(
        id=view.circle.id,
        invite_code=view.circle.invite_code,
        created_by=view.circle.created_by,
        members=view.member_ids,
        member_count=len(view.member_ids),
    )


@router.post("", response_model=CircleResponse, status_code=status.HTTP_201_CREATED)
async def create_circle(
    user_id: str = Depends(get_current_user_id),
    circles: CircleService = Depends(get_circle_service),
) -> CircleResponse:
    return _circle_response(await circles.create_circle(user_id))


@router.post("/join", response_model=CircleResponse)
async def join_circle(
    request: JoinCircleRequest,
    user_id: str = Depends(get_current_user_id),
    circles: CircleService = Depends(get_circle_service),
) -> CircleResponse:
    return _circle_response(await circles.join_circle(user_id, request.invite_code))


@router.get("/mine", response_model=CircleResponse)
async def get_my_circle(
    user_id: str = Depends(get_current_user_id),
    circles: CircleService = Depends(get_circle_service),
) -> CircleResponse:
    view = await circles.get_user_circle(user_id)
    if view is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not in a circle")
    return _circle_response(view)


@router.post("/leave")
async def leave_circle(
    user_id: str = Depends(get_current_user_id),
    circles: CircleService = Depends(get_circle_service),
) -> Dict[str, Any]:
    await circles.leave_circle(user_id)
    return {"message": "Left circle"}
