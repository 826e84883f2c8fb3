# backend/masterbook/repositories/base_repository.py
"""
Base repository for MasterBook data access.

Repositories flush but never commit. The service that owns the
request-scoped session decides when a unit of work ends.
"""

from contextlib import contextmanager
import logging
from typing import Any, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Shared lookups and writes for a single model.

    Attributes:
        db: SQLAlchemy session (managed by service layer)
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @contextmanager
    def _wrap_errors(self, action: str) -> Iterator[None]:
        """Re-raise SQLAlchemy failures as RepositoryException, logged once."""
        try:
            yield
        except IntegrityError as exc:
            self.logger.error("Integrity error while trying to %s %s: %s", action, self.model.__name__, exc)
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as exc:
            self.logger.error("Failed to %s %s: %s", action, self.model.__name__, exc)
            raise RepositoryException(f"Failed to {action} {self.model.__name__}: {exc}") from exc

    def get_by_id(self, id: str) -> Optional[T]:
        with self._wrap_errors("load"):
            return self.db.get(self.model, id)

    def create(self, **kwargs: Any) -> T:
        """Add a new row and flush so generated defaults (id, created_at) are populated."""
        with self._wrap_errors("create"):
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
            return entity

    def update(self, entity: T, **kwargs: Any) -> T:
        """Set the given attributes on a loaded entity; unknown names are ignored."""
        with self._wrap_errors("update"):
            for key, value in kwargs.items():
                if hasattr(entity, key):
                    setattr(entity, key, value)
            self.db.flush()
            return entity

    def find_one_by(self, **kwargs: Any) -> Optional[T]:
        with self._wrap_errors("query"):
            return self.db.query(self.model).filter_by(**kwargs).first()

    # Helpers for subclasses

    def _build_query(self) -> Query:
        return self.db.query(self.model)

    def _execute_query(self, query: Query) -> List[Any]:
        with self._wrap_errors("query"):
            return query.all()
