# backend/masterbook/routes/v1/masters.py
"""
Master discovery routes - API v1

Endpoints:
    GET /search - Masters by sport, location and hourly-rate bounds
    GET /me/students - Students who booked the calling master
    GET /{master_id} - Public master profile
"""

from decimal import Decimal
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import get_master_service, require_master
from ...core.exceptions import DomainException
from ...schemas.master import MasterSearchResponse, MasterStudentsResponse, MasterSummary
from ...services.access_policy import Actor
from ...services.master_service import MasterService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["masters-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    raise exc.to_http_exception()


@router.get("/search", response_model=MasterSearchResponse)
def search_masters(
    sport: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    price_min: Optional[Decimal] = Query(None, ge=0),
    price_max: Optional[Decimal] = Query(None, ge=0),
    master_service: MasterService = Depends(get_master_service),
) -> MasterSearchResponse:
    masters = master_service.search_masters(sport, location, price_min, price_max)
    return MasterSearchResponse(masters=masters, total=len(masters))


@router.get("/me/students", response_model=MasterStudentsResponse)
def get_my_students(
    actor: Actor = Depends(require_master),
    master_service: MasterService = Depends(get_master_service),
) -> MasterStudentsResponse:
    students = master_service.get_students(actor.user_id)
    return MasterStudentsResponse(students=students, total=len(students))


@router.get("/{master_id}", response_model=MasterSummary)
def get_master(
    master_id: str,
    master_service: MasterService = Depends(get_master_service),
) -> MasterSummary:
    try:
        return master_service.get_master(master_id)
    except DomainException as e:
        handle_domain_exception(e)
