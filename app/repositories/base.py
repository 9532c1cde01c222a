"""
Base repository class for data access layer.

Repositories never commit on their own; the calling service owns the
transaction so a record mutation and the team recompute that follows it
land together or not at all.

Example:
    class TeamRepository(BaseRepository[Team]):
        def find_by_name(self, tournament_id: str, name: str) -> Optional[Team]:
            return self.where_first(
                Team.tournament_id == tournament_id,
                Team.name == name,
            )
"""
from abc import ABC
from typing import TypeVar, Generic, Type, Optional, List
from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from app.models import utcnow

T = TypeVar("T")


class BaseRepository(Generic[T], ABC):
    """
    Base repository class providing common data access methods.

    Attributes:
        model_type: The SQLAlchemy model class this repository manages
        db: The database session
    """

    def __init__(self, model_type: Type[T], db: Session):
        self.model_type = model_type
        self.db = db

    # ========================================================================
    # CRUD Operations
    # ========================================================================

    def find_by_id(self, id: str) -> Optional[T]:
        """Find a single record by ID."""
        return self.db.query(self.model_type).filter(self.model_type.id == id).first()

    def find_all(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        order_by: Optional[str] = None
    ) -> List[T]:
        """
        Find all records with optional pagination.

        Args:
            limit: Maximum number of records to return
            offset: Number of records to skip
            order_by: Column name to order by (prefix with '-' for descending)
        """
        query = self.db.query(self.model_type)

        if order_by:
            if order_by.startswith('-'):
                query = query.order_by(desc(getattr(self.model_type, order_by[1:])))
            else:
                query = query.order_by(getattr(self.model_type, order_by))

        if offset is not None:
            query = query.offset(offset)

        if limit is not None:
            query = query.limit(limit)

        return query.all()

    def create(self, **kwargs) -> T:
        """
        Create a new record.

        Returns:
            The created record (flushed, not committed)
        """
        instance = self.model_type(**kwargs)
        self.db.add(instance)
        self.db.flush()
        return instance

    def update(self, instance: T, **kwargs) -> T:
        """Set attributes on an instance and bump updated_at when the model has one."""
        for key, value in kwargs.items():
            if hasattr(instance, key):
                setattr(instance, key, value)
        if hasattr(instance, "updated_at"):
            instance.updated_at = utcnow()
        return instance

    def delete(self, instance: T) -> None:
        self.db.delete(instance)

    # ========================================================================
    # Query Builders
    # ========================================================================

    def where_first(self, *criterion) -> Optional[T]:
        """Filter records using SQLAlchemy expressions and return first match."""
        return self.db.query(self.model_type).filter(*criterion).first()

    def count(self, *criterion) -> int:
        """Count records matching optional criterion."""
        query = self.db.query(func.count(self.model_type.id))
        if criterion:
            query = query.filter(*criterion)
        return query.scalar() or 0

    # ========================================================================
    # Transaction control
    # ========================================================================

    def save(self) -> None:
        """Commit pending changes to the database."""
        self.db.commit()

    def refresh(self, instance: T) -> T:
        """Refresh an instance from the database."""
        self.db.refresh(instance)
        return instance
