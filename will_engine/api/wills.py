"""
Will endpoints.

Request bodies and responses use camelCase keys; dates inside check-in
bodies are local calendar keys (YYYY-MM-DD) in the Will's timezone.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from ..core.clock import ensure_utc
from ..services.check_in_service import CheckInService
from ..services.review_gate import ReviewGate
from ..services.will_service import WillService
from .dependencies import (
    get_check_in_service,
    get_clock,
    get_current_user_id,
    get_review_gate,
    get_will_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["wills"])


# Request/Response models
class CreateWillRequest(BaseModel):
    mode: str = "solo"
    visibility: str = "private"
    start_date: datetime = Field(alias="startDate")
    end_date: Optional[datetime] = Field(default=None, alias="endDate")
    is_indefinite: bool = Field(default=False, alias="isIndefinite")
    active_days: str = Field(default="every_day", alias="activeDays")
    custom_days: List[int] = Field(default_factory=list, alias="customDays")
    check_in_type: str = Field(default="daily", alias="checkInType")
    timezone: Optional[str] = None
    what: Optional[str] = None
    why: Optional[str] = None

    class Config:
        populate_by_name = True


class UpdateWillRequest(BaseModel):
    start_date: datetime = Field(alias="startDate")
    end_date: Optional[datetime] = Field(default=None, alias="endDate")

    class Config:
        populate_by_name = True


class CommitmentRequest(BaseModel):
    what: str
    why: str


class CommitmentResponse(BaseModel):
    id: int
    will_id: int = Field(alias="willId")
    user_id: str = Field(alias="userId")
    what: str
    why: str

    class Config:
        from_attributes = True
        populate_by_name = True


class CheckInRequest(BaseModel):
    date: str
    status: str


class CheckInResponse(BaseModel):
    id: int
    will_id: int = Field(alias="willId")
    date: str
    status: str
    user_id: Optional[str] = Field(default=None, alias="userId")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    class Config:
        from_attributes = True
        populate_by_name = True


class ReviewRequest(BaseModel):
    follow_through: Optional[str] = Field(default=None, alias="followThrough")
    reflection_text: Optional[str] = Field(default=None, alias="reflectionText")

    class Config:
        populate_by_name = True


class ReviewResponse(BaseModel):
    id: int
    will_id: int = Field(alias="willId")
    user_id: str = Field(alias="userId")
    follow_through: str = Field(alias="followThrough")
    reflection_text: Optional[str] = Field(default=None, alias="reflectionText")
    created_at: datetime = Field(alias="createdAt")

    class Config:
        from_attributes = True
        populate_by_name = True


class EndRoomRequest(BaseModel):
    scheduled_at: datetime = Field(alias="endRoomScheduledAt")

    class Config:
        populate_by_name = True


def _end_room_payload(window, now: datetime) -> Dict[str, Any]:
    if window is None:
        return {
            "endRoomScheduledAt": None,
            "endRoomStatus": None,
            "isOpen": False,
            "opensAt": None,
            "closesAt": None,
        }
    return window.to_dict(now)


# ----------------------------------------------------------------------
# Wills
# ----------------------------------------------------------------------


@router.post("/wills", status_code=status.HTTP_201_CREATED)
async def create_will(
    request: CreateWillRequest,
    user_id: str = Depends(get_current_user_id),
    wills: WillService = Depends(get_will_service),
    clock=Depends(get_clock),
) -> Dict[str, Any]:
    will = await wills.create_will(
        user_id,
        mode=request.mode,
        start_date=request.start_date,
        end_date=request.end_date,
        is_indefinite=request.is_indefinite,
        visibility=request.visibility,
        active_days=request.active_days,
        custom_days=request.custom_days,
        check_in_type=request.check_in_type,
        timezone=request.timezone,
        what=request.what,
        why=request.why,
    )
    details = await wills.get_will_details(will.id, user_id)
    return details.to_dict(clock.now())


@router.get("/wills/{will_id}")
async def get_will(
    will_id: int,
    user_id: str = Depends(get_current_user_id),
    wills: WillService = Depends(get_will_service),
    clock=Depends(get_clock),
) -> Dict[str, Any]:
    details = await wills.get_will_details(will_id, user_id)
    return details.to_dict(clock.now())


@router.put("/wills/{will_id}")
async def update_will(
    will_id: int,
    request: UpdateWillRequest,
    user_id: str = Depends(get_current_user_id),
    wills: WillService = Depends(get_will_service),
) -> Dict[str, Any]:
    will = await wills.update_will_dates(
        will_id, user_id, request.start_date, request.end_date
    )
    return {
        "message": "Will updated successfully",
        "startDate": ensure_utc(will.start_date).isoformat(),
        "endDate": ensure_utc(will.end_date).isoformat() if will.end_date else None,
    }


@router.delete("/wills/{will_id}")
async def delete_will(
    will_id: int,
    user_id: str = Depends(get_current_user_id),
    wills: WillService = Depends(get_will_service),
) -> Dict[str, Any]:
    await wills.delete_will(will_id, user_id)
    return {"message": "Will deleted", "status": "terminated"}


@router.post("/wills/{will_id}/end")
async def request_end(
    will_id: int,
    user_id: str = Depends(get_current_user_id),
    wills: WillService = Depends(get_will_service),
) -> Dict[str, Any]:
    will = await wills.request_end(will_id, user_id)
    return {
        "message": "End requested; the Will moves to review shortly",
        "endRequestedAt": ensure_utc(will.end_requested_at).isoformat(),
    }


@router.post("/wills/{will_id}/pause")
async def pause_will(
    will_id: int,
    user_id: str = Depends(get_current_user_id),
    wills: WillService = Depends(get_will_service),
) -> Dict[str, Any]:
    await wills.pause(will_id, user_id)
    return {"status": "paused"}


@router.post("/wills/{will_id}/resume")
async def resume_will(
    will_id: int,
    user_id: str = Depends(get_current_user_id),
    wills: WillService = Depends(get_will_service),
) -> Dict[str, Any]:
    return {"status": await wills.resume(will_id, user_id)}


@router.post("/wills/{will_id}/archive")
async def archive_will(
    will_id: int,
    user_id: str = Depends(get_current_user_id),
    wills: WillService = Depends(get_will_service),
) -> Dict[str, Any]:
    await wills.archive(will_id, user_id)
    return {"status": "archived"}


# ----------------------------------------------------------------------
# Commitments
# ----------------------------------------------------------------------


@router.post(
    "/wills/{will_id}/commitments",
    response_model=CommitmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_commitment(
    will_id: int,
    request: CommitmentRequest,
    user_id: str = Depends(get_current_user_id),
    wills: WillService = Depends(get_will_service),
) -> CommitmentResponse:
    commitment = await wills.submit_commitment(will_id, user_id, request.what, request.why)
    return CommitmentResponse.model_validate(commitment)


@router.put("/will-commitments/{commitment_id}", response_model=CommitmentResponse)
async def update_commitment(
    commitment_id: int,
    request: CommitmentRequest,
    user_id: str = Depends(get_current_user_id),
    wills: WillService = Depends(get_will_service),
) -> CommitmentResponse:
    commitment = await wills.update_commitment(
        commitment_id, user_id, request.what, request.why
    )
    return CommitmentResponse.model_validate(commitment)


# ----------------------------------------------------------------------
# Check-ins
# ----------------------------------------------------------------------


@router.post("/wills/{will_id}/check-ins", response_model=CheckInResponse)
async def record_check_in(
    will_id: int,
    request: CheckInRequest,
    user_id: str = Depends(get_current_user_id),
    check_ins: CheckInService = Depends(get_check_in_service),
) -> CheckInResponse:
    check_in = await check_ins.record_check_in(will_id, user_id, request.date, request.status)
    return CheckInResponse.model_validate(check_in)


@router.get("/wills/{will_id}/check-ins", response_model=List[CheckInResponse])
async def list_check_ins(
    will_id: int,
    user_id: str = Depends(get_current_user_id),
    wills: WillService = Depends(get_will_service),
    check_ins: CheckInService = Depends(get_check_in_service),
) -> List[CheckInResponse]:
    await wills.ensure_viewer(will_id, user_id)
    rows = await check_ins.list_check_ins(will_id)
    return [CheckInResponse.model_validate(row) for row in rows]


@router.get("/wills/{will_id}/check-in-progress")
async def get_check_in_progress(
    will_id: int,
    user_id: str = Depends(get_current_user_id),
    wills: WillService = Depends(get_will_service),
    check_ins: CheckInService = Depends(get_check_in_service),
) -> Dict[str, Any]:
    await wills.ensure_viewer(will_id, user_id)
    stats = await check_ins.compute_progress(will_id)
    return stats.to_dict()


# ----------------------------------------------------------------------
# Review and acknowledgment
# ----------------------------------------------------------------------


@router.post(
    "/wills/{will_id}/review",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_review(
    will_id: int,
    request: ReviewRequest,
    user_id: str = Depends(get_current_user_id),
    gate: ReviewGate = Depends(get_review_gate),
) -> ReviewResponse:
    review = await gate.submit_review(
        will_id, user_id, request.follow_through, request.reflection_text
    )
    return ReviewResponse.model_validate(review)


@router.post("/wills/{will_id}/acknowledge")
async def acknowledge_will(
    will_id: int,
    user_id: str = Depends(get_current_user_id),
    gate: ReviewGate = Depends(get_review_gate),
) -> Dict[str, Any]:
    result = await gate.acknowledge(will_id, user_id)
    return {
        "acknowledged": True,
        "created": result.created,
        "acknowledgedCount": result.counts.acknowledged_count,
        "commitmentCount": result.counts.commitment_count,
        "readyForNewWill": result.counts.ready_for_new_will,
    }


# ----------------------------------------------------------------------
# End Room
# ----------------------------------------------------------------------


@router.get("/wills/{will_id}/end-room")
async def get_end_room(
    will_id: int,
    user_id: str = Depends(get_current_user_id),
    wills: WillService = Depends(get_will_service),
    clock=Depends(get_clock),
) -> Dict[str, Any]:
    window = await wills.get_end_room(will_id, user_id)
    return _end_room_payload(window, clock.now())


@router.put("/wills/{will_id}/end-room")
async def set_end_room(
    will_id: int,
    request: EndRoomRequest,
    user_id: str = Depends(get_current_user_id),
    wills: WillService = Depends(get_will_service),
    clock=Depends(get_clock),
) -> Dict[str, Any]:
    window = await wills.schedule_end_room(will_id, user_id, request.scheduled_at)
    return _end_room_payload(window, clock.now())
