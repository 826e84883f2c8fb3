"""
Authentication and authorization dependencies.

Routes receive either the loaded User or its Actor view; role checks
beyond "is this a master" live in services.access_policy.
"""

import logging

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from ...auth import get_current_user_id
from ...models.user import User
from ...repositories import RepositoryFactory
from ...services.access_policy import Actor
from .database import get_db

logger = logging.getLogger(__name__)


def get_current_user(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> User:
    """Load the active user the bearer token refers to."""
    user = RepositoryFactory.create_user_repository(db).get_by_id(user_id)
    if user is None or not user.is_active:
        logger.info(f"Token subject {user_id} is unknown or inactive")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_current_actor(current_user: User = Depends(get_current_user)) -> Actor:
    return Actor.from_user(current_user)


def require_master(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_master:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": "Only masters can perform this action", "code": "MASTER_ONLY"},
        )
    return actor
