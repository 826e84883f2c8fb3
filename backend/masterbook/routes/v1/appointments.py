# backend/masterbook/routes/v1/appointments.py
"""
Appointment routes - API v1

All business logic delegated to AppointmentService.

Endpoints:
    GET / - The caller's appointments
    POST / - Book an appointment (students)
    GET /{appointment_id} - Appointment details (parties only)
    PATCH /{appointment_id} - Notes, reschedule or status change
    DELETE /{appointment_id} - Cancel (never a hard delete)
"""

import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from ...api.dependencies import get_appointment_service, get_current_actor
from ...core.exceptions import DomainException
from ...schemas.appointment import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentUpdate,
    CancellationResponse,
)
from ...services.access_policy import Actor
from ...services.appointment_service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["appointments-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    raise exc.to_http_exception()


@router.get("", response_model=AppointmentListResponse)
def list_appointments(
    actor: Actor = Depends(get_current_actor),
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentListResponse:
    appointments = appointment_service.list_appointments(actor)
    return AppointmentListResponse(
        appointments=[AppointmentResponse.from_appointment(a) for a in appointments],
        total=len(appointments),
    )


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    payload: AppointmentCreate = Body(...),
    actor: Actor = Depends(get_current_actor),
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentResponse:
    """
    Book a session with a master.

    409 with ``errors.reason`` = exact_overlap or spans_into_slot when the
    time is taken; 400 when it is outside the master's weekly template.
    """
    try:
        appointment = appointment_service.create_appointment(actor, payload)
        return AppointmentResponse.from_appointment(appointment)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: str,
    actor: Actor = Depends(get_current_actor),
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentResponse:
    try:
        return AppointmentResponse.from_appointment(appointment_service.get_appointment(appointment_id, actor))
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{appointment_id}", response_model=AppointmentResponse)
def update_appointment(
    appointment_id: str,
    payload: AppointmentUpdate = Body(...),
    actor: Actor = Depends(get_current_actor),
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentResponse:
    """403 for non-parties, 409 for a disallowed transition or a conflicting reschedule."""
    try:
        appointment = appointment_service.update_appointment(appointment_id, actor, payload)
        return AppointmentResponse.from_appointment(appointment)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/{appointment_id}", response_model=CancellationResponse)
def cancel_appointment(
    appointment_id: str,
    reason: Optional[str] = Query(None, max_length=500),
    actor: Actor = Depends(get_current_actor),
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> CancellationResponse:
    """
    Cancel an appointment.

    Notifications go out after the response; their failure does not change it.
    """
    try:
        result = appointment_service.cancel_appointment(appointment_id, actor, reason)
        return CancellationResponse(
            success=True,
            potential_replacements=result.potential_replacements,
            appointment=AppointmentResponse.from_appointment(result.appointment),
        )
    except DomainException as e:
        handle_domain_exception(e)
