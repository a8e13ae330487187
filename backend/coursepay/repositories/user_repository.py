"""User lookups plus the legacy balance accumulator."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.user import User
from .base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, User)

    def get_fresh(self, user_id: str, *, for_update: bool = False) -> Optional[User]:
        """
        Load a user, overwriting any stale copy in the identity map.

        ``adjust_available_balance`` writes with a bulk UPDATE that does not
        touch loaded objects, so balance reads go through here. With
        ``for_update`` the row is locked (``SELECT ... FOR UPDATE``) to
        serialize balance-changing work per user; SQLite ignores the clause
        and relies on its database-level write lock.
        """
        query = select(User).where(User.id == user_id).execution_options(populate_existing=True)
        if for_update:
            query = query.with_for_update()
        try:
            return self.db.scalars(query).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to load user {user_id}: {str(e)}")

    def adjust_available_balance(self, user_id: str, delta: Decimal) -> bool:
        """Atomically add ``delta`` (may be negative) to the legacy accumulator."""
        try:
            result = self.db.execute(
                update(User)
                .where(User.id == user_id)
                .values(available_balance=User.available_balance + delta)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error adjusting balance for {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to adjust balance for {user_id}: {str(e)}")
        return bool(result.rowcount)
