# backend/masterbook/routes/v1/availability.py
"""
Availability routes - API v1

Endpoints:
    GET /template - A master's weekly template (defaults to the caller)
    POST /template - Replace the caller's weekly template
    GET /day - Slot grid of one date, annotated with live bookings
"""

from datetime import date
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies import get_availability_service, get_current_actor, require_master
from ...core.exceptions import DomainException
from ...schemas.availability import DayAvailability, WeeklyTemplate, WeeklyTemplateSave
from ...services.access_policy import Actor
from ...services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["availability-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    raise exc.to_http_exception()


def _resolve_provider(provider_id: Optional[str], actor: Actor) -> str:
    if provider_id:
        return provider_id
    if actor.is_master:
        return actor.user_id
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"message": "providerId is required", "code": "PROVIDER_REQUIRED"},
    )


@router.get("/template", response_model=WeeklyTemplate)
def get_weekly_template(
    provider_id: Optional[str] = Query(None, alias="providerId"),
    actor: Actor = Depends(get_current_actor),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> WeeklyTemplate:
    """Weekly rules and notes; the business default when nothing is saved."""
    try:
        return availability_service.get_weekly_template(_resolve_provider(provider_id, actor))
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/template", response_model=WeeklyTemplate)
def save_weekly_template(
    payload: WeeklyTemplateSave = Body(...),
    actor: Actor = Depends(require_master),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> WeeklyTemplate:
    """Replace the caller's weekly template; 400 names the first invalid rule."""
    try:
        return availability_service.save_weekly_template(actor.user_id, payload.time_slots, payload.notes)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/day", response_model=DayAvailability)
def get_day_availability(
    target_date: date = Query(..., alias="date"),
    provider_id: Optional[str] = Query(None, alias="providerId"),
    actor: Actor = Depends(get_current_actor),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> DayAvailability:
    """Thirty-minute slots of ``date`` with template and booking flags."""
    try:
        return availability_service.get_day_availability(_resolve_provider(provider_id, actor), target_date)
    except DomainException as e:
        handle_domain_exception(e)
