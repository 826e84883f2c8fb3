# backend/masterbook/services/appointment_service.py
"""
Appointment Service for the MasterBook platform.

Owns the appointment lifecycle:

    PENDING   -> CONFIRMED   (master)
    PENDING   -> CANCELLED   (master or student)
    CONFIRMED -> CANCELLED   (master or student)
    CONFIRMED -> COMPLETED   (master)

CANCELLED and COMPLETED are terminal. Creating and rescheduling run the
template gate and the conflict check while holding the master's booking
lock, inside one transaction, so two overlapping requests cannot both pass.

Cancellation commits first; replacement search, the automation record and
the AppointmentCancelled event follow as best-effort side effects whose
failures are logged and never undo the cancellation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.booking_lock import provider_booking_lock
from ..core.config import settings
from ..core.exceptions import (
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import local_to_utc, utc_to_local
from ..core.ulid_helper import is_valid_ulid
from ..events.appointment_events import (
    AppointmentCancelled,
    AppointmentCreated,
    AppointmentStatusChanged,
    Recipient,
)
from ..events.publisher import EventPublisher
from ..models.appointment import Appointment, AppointmentStatus
from ..models.user import User
from ..repositories import RepositoryFactory
from ..repositories.appointment_repository import AppointmentRepository
from ..repositories.user_repository import UserRepository
from ..schemas.appointment import AppointmentCreate, AppointmentUpdate
from ..utils.time_helpers import string_to_time, time_to_minutes
from .access_policy import Actor, can_modify, can_transition
from .automation_service import AutomationService
from .availability_service import AvailabilityService
from .base import BaseService
from .conflict_checker import ConflictChecker, check_template_window
from .replacement_finder import ReplacementFinder

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")


@dataclass
class CancellationResult:
    """Outcome of a committed cancellation."""

    appointment: Appointment
    replacements: List[User] = field(default_factory=list)

    @property
    def potential_replacements(self) -> int:
        return len(self.replacements)


class AppointmentService(BaseService):
    """Service layer for appointment creation and lifecycle transitions."""

    def __init__(
        self,
        db: Session,
        publisher: Optional[EventPublisher] = None,
        repository: Optional[AppointmentRepository] = None,
        user_repository: Optional[UserRepository] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        availability_service: Optional[AvailabilityService] = None,
        replacement_finder: Optional[ReplacementFinder] = None,
        automation_service: Optional[AutomationService] = None,
    ):
        super().__init__(db)
        self.publisher = publisher or EventPublisher()
        self.repository = repository or RepositoryFactory.create_appointment_repository(db)
        self.user_repository = user_repository or RepositoryFactory.create_user_repository(db)
        self.conflict_checker = conflict_checker or ConflictChecker(db, self.repository)
        self.availability_service = availability_service or AvailabilityService(
            db, user_repository=self.user_repository, appointment_repository=self.repository
        )
        self.replacement_finder = replacement_finder or ReplacementFinder(
            db, user_repository=self.user_repository, appointment_repository=self.repository
        )
        self.automation_service = automation_service or AutomationService(
            db, appointment_repository=self.repository
        )

    # Queries

    def _load(self, appointment_id: str) -> Appointment:
        appointment = self.repository.get_with_parties(appointment_id) if is_valid_ulid(appointment_id) else None
        if appointment is None:
            raise NotFoundException(f"Appointment {appointment_id} not found", code="APPOINTMENT_NOT_FOUND")
        return appointment

    def _load_for(self, appointment_id: str, actor: Actor) -> Appointment:
        appointment = self._load(appointment_id)
        if not can_modify(actor, appointment):
            raise ForbiddenException(
                "You are not a party to this appointment", code="NOT_APPOINTMENT_PARTY"
            )
        return appointment

    @BaseService.measure_operation("get_appointment")
    def get_appointment(self, appointment_id: str, actor: Actor) -> Appointment:
        return self._load_for(appointment_id, actor)

    @BaseService.measure_operation("list_appointments")
    def list_appointments(self, actor: Actor) -> List[Appointment]:
        """Appointments where the actor is the master or the student, by start."""
        return self.repository.get_for_user(actor.user_id)

    # Creation

    def _default_price(self, master: User, duration_minutes: int) -> Decimal:
        profile = master.master_profile
        rate = Decimal(str(profile.hourly_rate)) if profile and profile.hourly_rate is not None else Decimal("0")
        return (rate * duration_minutes / 60).quantize(_CENTS, rounding=ROUND_HALF_UP)

    def _validate_slot(
        self,
        master_id: str,
        proposed_start: datetime,
        duration_minutes: int,
        exclude_appointment_id: Optional[str] = None,
    ) -> None:
        """
        Template gate then conflict check. Caller holds the booking lock.

        Raises:
            ValidationException: outside the weekly template
            AppointmentConflictException: overlapping appointment
        """
        if not 0 < duration_minutes <= settings.max_appointment_minutes:
            raise ValidationException(
                f"Duration must be between 1 and {settings.max_appointment_minutes} minutes",
                code="INVALID_DURATION",
            )
        local_start = utc_to_local(proposed_start)
        template = self.availability_service.get_weekly_template(master_id)
        check_template_window(
            template.time_slots,
            local_start.date(),
            time_to_minutes(local_start.time()),
            duration_minutes,
        )
        self.conflict_checker.validate_booking_request(
            master_id, proposed_start, duration_minutes, exclude_appointment_id=exclude_appointment_id
        )

    @BaseService.measure_operation("create_appointment")
    def create_appointment(self, actor: Actor, data: AppointmentCreate) -> Appointment:
        """
        Book a session for the acting student.

        Args:
            actor: The requesting identity (must be a student)
            data: Wall-clock date/time in the business timezone and duration

        Returns:
            The new PENDING appointment

        Raises:
            ForbiddenException: If the actor is not a student
            NotFoundException: If the master does not exist
            ValidationException: If the request falls outside the master's template
            AppointmentConflictException: If it overlaps an existing appointment
            ConflictException: If another booking for the master holds the lock
        """
        if not actor.is_student:
            raise ForbiddenException("Only students can book appointments", code="STUDENT_ONLY")
        master = self.user_repository.get_master(data.provider_id)
        if master is None:
            raise NotFoundException(f"Master {data.provider_id} not found", code="MASTER_NOT_FOUND")

        proposed_start = local_to_utc(data.date, string_to_time(data.time))
        price = data.price if data.price is not None else self._default_price(master, data.duration_minutes)

        with provider_booking_lock(master.id):
            with self.transaction():
                self.user_repository.lock_master_row(master.id)
                self._validate_slot(master.id, proposed_start, data.duration_minutes)
                appointment = self.repository.create(
                    master_id=master.id,
                    student_id=actor.user_id,
                    start_at=proposed_start,
                    duration_minutes=data.duration_minutes,
                    status=AppointmentStatus.PENDING.value,
                    price=price,
                    notes=data.notes or "",
                )

        self.logger.info(
            f"Appointment {appointment.id} requested with master {master.id} at {proposed_start.isoformat()}",
            extra={"appointment_id": appointment.id, "provider_id": master.id, "client_id": actor.user_id},
        )
        appointment = self._load(appointment.id)
        self.publisher.publish(
            AppointmentCreated(
                appointment_id=appointment.id,
                provider_id=appointment.master_id,
                client_id=appointment.student_id,
                start_at=appointment.start_utc,
                duration_minutes=appointment.duration_minutes,
                provider=Recipient.from_user(appointment.master),
                client=Recipient.from_user(appointment.student),
            )
        )
        return appointment

    # Lifecycle

    def _check_transition(self, actor: Actor, appointment: Appointment, new_status: AppointmentStatus) -> None:
        if not appointment.can_transition_to(new_status):
            raise InvalidTransitionException(appointment.status, new_status.value)
        if not can_transition(actor, appointment, new_status):
            raise ForbiddenException(
                f"Only the master can mark an appointment {new_status.value}", code="MASTER_ONLY"
            )

    @BaseService.measure_operation("transition")
    def transition(
        self,
        appointment_id: str,
        actor: Actor,
        new_status: AppointmentStatus,
        reason: Optional[str] = None,
    ) -> Appointment:
        """
        Move an appointment to ``new_status``.

        Raises:
            NotFoundException: Unknown appointment
            ForbiddenException: Actor is not a party, or not the master for confirm/complete
            InvalidTransitionException: Edge not allowed by the state machine
        """
        new_status = AppointmentStatus(new_status)
        if new_status == AppointmentStatus.CANCELLED:
            return self.cancel_appointment(appointment_id, actor, reason).appointment

        appointment = self._load_for(appointment_id, actor)

        with provider_booking_lock(appointment.master_id):
            with self.transaction():
                self.user_repository.lock_master_row(appointment.master_id)
                # Re-read under the lock so a concurrent cancel is never overwritten
                self.db.refresh(appointment)
                self._check_transition(actor, appointment, new_status)
                old_status = appointment.status
                if new_status == AppointmentStatus.CONFIRMED:
                    appointment.confirm()
                else:
                    appointment.complete()

        if new_status == AppointmentStatus.CONFIRMED:
            try:
                self.automation_service.schedule_follow_ups(appointment)
            except Exception as exc:
                self.logger.error(f"Failed to schedule follow-ups for {appointment.id}: {exc}")

        self.publisher.publish(
            AppointmentStatusChanged(
                appointment_id=appointment.id,
                provider_id=appointment.master_id,
                client_id=appointment.student_id,
                old_status=old_status,
                new_status=new_status.value,
                changed_by=actor.user_id,
                start_at=appointment.start_utc,
                duration_minutes=appointment.duration_minutes,
                provider=Recipient.from_user(appointment.master),
                client=Recipient.from_user(appointment.student),
            )
        )
        return appointment

    @BaseService.measure_operation("cancel_appointment")
    def cancel_appointment(
        self, appointment_id: str, actor: Actor, reason: Optional[str] = None
    ) -> CancellationResult:
        """
        Cancel an appointment (never a hard delete) and run the cancellation workflow.

        Cancelling twice raises InvalidTransitionException and dispatches nothing.
        """
        appointment = self._load_for(appointment_id, actor)

        with provider_booking_lock(appointment.master_id):
            with self.transaction():
                self.user_repository.lock_master_row(appointment.master_id)
                # Re-read under the lock so a concurrent cancel is seen
                self.db.refresh(appointment)
                self._check_transition(actor, appointment, AppointmentStatus.CANCELLED)
                appointment.cancel(actor.user_id, reason)

        self.logger.info(
            f"Appointment {appointment.id} cancelled",
            extra={"appointment_id": appointment.id, "cancelled_by": actor.user_id},
        )
        return CancellationResult(
            appointment=appointment,
            replacements=self._after_cancellation(appointment, actor, reason),
        )

    def _after_cancellation(self, appointment: Appointment, actor: Actor, reason: Optional[str]) -> List[User]:
        """Best-effort side effects of a committed cancellation."""
        replacements: List[User] = []
        try:
            replacements = self.replacement_finder.find_replacements(appointment)
        except Exception as exc:
            self.logger.error(f"Replacement search failed for {appointment.id}: {exc}")

        try:
            self.automation_service.record_cancellation(appointment, actor.user_id, reason, replacements)
        except Exception as exc:
            self.logger.error(f"Failed to record cancellation automation for {appointment.id}: {exc}")

        try:
            self.publisher.publish(
                AppointmentCancelled(
                    appointment_id=appointment.id,
                    provider_id=appointment.master_id,
                    client_id=appointment.student_id,
                    cancelled_by=actor.user_id,
                    reason=reason,
                    start_at=appointment.start_utc,
                    duration_minutes=appointment.duration_minutes,
                    provider=Recipient.from_user(appointment.master),
                    client=Recipient.from_user(appointment.student),
                    replacements=[Recipient.from_user(u) for u in replacements],
                )
            )
        except Exception as exc:
            self.logger.error(f"Failed to publish cancellation of {appointment.id}: {exc}")
        return replacements

    # Updates

    @BaseService.measure_operation("update_appointment")
    def update_appointment(self, appointment_id: str, actor: Actor, data: AppointmentUpdate) -> Appointment:
        """
        Partial update: notes, reschedule (date + time and/or duration), status.

        Every check runs before the first write; a reschedule is validated
        against the template and other appointments, excluding itself.
        """
        appointment = self._load_for(appointment_id, actor)

        if data.status == AppointmentStatus.CANCELLED:
            return self.cancel_appointment(appointment_id, actor, data.reason).appointment
        if data.status is not None:
            self._check_transition(actor, appointment, AppointmentStatus(data.status))
        if data.is_reschedule and not appointment.is_blocking:
            raise ConflictException(
                f"A {appointment.status} appointment cannot be rescheduled", code="NOT_RESCHEDULABLE"
            )

        if data.is_reschedule:
            self._reschedule(appointment, data)
        if data.notes is not None:
            with self.transaction():
                self.repository.update(appointment, notes=data.notes.strip())
        if data.status is not None:
            return self.transition(appointment_id, actor, AppointmentStatus(data.status))
        return appointment

    def _reschedule(self, appointment: Appointment, data: AppointmentUpdate) -> None:
        if data.date is not None and data.time is not None:
            new_start = local_to_utc(data.date, string_to_time(data.time))
        else:
            new_start = appointment.start_utc
        duration = data.duration_minutes or appointment.duration_minutes

        with provider_booking_lock(appointment.master_id):
            with self.transaction():
                self.user_repository.lock_master_row(appointment.master_id)
                self._validate_slot(
                    appointment.master_id, new_start, duration, exclude_appointment_id=appointment.id
                )
                self.repository.update(appointment, start_at=new_start, duration_minutes=duration)

        self.logger.info(
            f"Appointment {appointment.id} rescheduled to {new_start.isoformat()} ({duration} min)",
            extra={"appointment_id": appointment.id},
        )
