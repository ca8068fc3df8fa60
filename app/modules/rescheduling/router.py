"""Rescheduling API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.enums import RescheduleStatusEnum
from app.modules.identity.models import User
from app.modules.identity.service import get_current_user, get_optional_current_user
from app.modules.rescheduling.schemas import (
    FutureClassRead,
    RescheduleDecisionRequest,
    RescheduleErrorKind,
    RescheduleOutcome,
    RescheduleOverviewRead,
    RescheduleRequestCreate,
    RescheduleRequestFilters,
    RescheduleRequestRead,
)
from app.modules.rescheduling.service import RescheduleService, get_reschedule_service
from app.shared.exceptions import RescheduleRuleViolation
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/rescheduling", tags=["rescheduling"])

OUTCOME_STATUS_CODES: dict[RescheduleErrorKind, int] = {
    RescheduleErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    RescheduleErrorKind.STUDENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RescheduleErrorKind.NO_ACTIVE_ENROLLMENT: status.HTTP_404_NOT_FOUND,
    RescheduleErrorKind.NOT_PRIVATE_FORMAT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    RescheduleErrorKind.TOO_SOON: status.HTTP_422_UNPROCESSABLE_ENTITY,
    RescheduleErrorKind.TOO_FAR_AHEAD: status.HTTP_422_UNPROCESSABLE_ENTITY,
    RescheduleErrorKind.DUPLICATE_REQUEST: status.HTTP_409_CONFLICT,
    RescheduleErrorKind.RATE_LIMIT_EXCEEDED: status.HTTP_429_TOO_MANY_REQUESTS,
    RescheduleErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RescheduleErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    RescheduleErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    RescheduleErrorKind.STORAGE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def raise_for_outcome(outcome: RescheduleOutcome) -> RescheduleOutcome:
    """Turn a failed outcome into the unified error response."""
    if outcome.success:
        return outcome
    kind = outcome.error or RescheduleErrorKind.STORAGE_ERROR
    raise RescheduleRuleViolation(
        code=str(kind),
        message=outcome.message or str(kind),
        status_code=OUTCOME_STATUS_CODES[kind],
    )


@router.get("/overview", response_model=RescheduleOverviewRead)
async def get_overview(
    service: RescheduleService = Depends(get_reschedule_service),
    current_user: User = Depends(get_current_user),
) -> RescheduleOverviewRead:
    """Enrollment, selectable classes and recent requests of the caller."""
    return await service.get_overview(current_user)


@router.get("/future-classes", response_model=list[FutureClassRead])
async def list_future_classes(
    service: RescheduleService = Depends(get_reschedule_service),
    current_user: User = Depends(get_current_user),
) -> list[FutureClassRead]:
    """Classes the caller may ask to reschedule."""
    return await service.list_future_classes(current_user)


@router.post("/requests", response_model=RescheduleOutcome, status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: RescheduleRequestCreate,
    service: RescheduleService = Depends(get_reschedule_service),
    current_user: User | None = Depends(get_optional_current_user),
) -> RescheduleOutcome:
    """Submit a reschedule request for one upcoming class."""
    outcome = await service.create_request(payload, current_user)
    return raise_for_outcome(outcome)


@router.post("/requests/{request_id}/cancel", response_model=RescheduleOutcome)
async def cancel_request(
    request_id: UUID,
    service: RescheduleService = Depends(get_reschedule_service),
    current_user: User | None = Depends(get_optional_current_user),
) -> RescheduleOutcome:
    """Cancel own pending request."""
    outcome = await service.cancel_request(request_id, current_user)
    return raise_for_outcome(outcome)


@router.get("/requests", response_model=Page[RescheduleRequestRead])
async def list_requests(
    request_status: RescheduleStatusEnum | None = Query(default=None, alias="status"),
    cohort_id: UUID | None = None,
    student_id: UUID | None = None,
    pagination=Depends(get_pagination_params),
    service: RescheduleService = Depends(get_reschedule_service),
    current_user: User = Depends(get_current_user),
) -> Page[RescheduleRequestRead]:
    """List requests for staff review."""
    filters = RescheduleRequestFilters(status=request_status, cohort_id=cohort_id, student_id=student_id)
    items, total = await service.list_requests(current_user, filters, pagination.limit, pagination.offset)
    serialized = [RescheduleRequestRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.post("/requests/{request_id}/approve", response_model=RescheduleRequestRead)
async def approve_request(
    request_id: UUID,
    payload: RescheduleDecisionRequest,
    service: RescheduleService = Depends(get_reschedule_service),
    current_user: User = Depends(get_current_user),
) -> RescheduleRequestRead:
    """Approve a pending request."""
    request = await service.approve_request(request_id, payload, current_user)
    return RescheduleRequestRead.model_validate(request)


@router.post("/requests/{request_id}/decline", response_model=RescheduleRequestRead)
async def decline_request(
    request_id: UUID,
    payload: RescheduleDecisionRequest,
    service: RescheduleService = Depends(get_reschedule_service),
    current_user: User = Depends(get_current_user),
) -> RescheduleRequestRead:
    """Decline a pending request."""
    request = await service.decline_request(request_id, payload, current_user)
    return RescheduleRequestRead.model_validate(request)
