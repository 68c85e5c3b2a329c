import logging

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from befriend.models.user import User
from befriend.utils.exceptions import ConflictError, StoreError

logger = logging.getLogger(__name__)


class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _execute(self, query):
        try:
            return await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"User query failed: {e}")
            raise StoreError(str(e)) from e

    async def _commit(self):
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"User commit failed: {e}")
            raise StoreError(str(e)) from e

    async def create(self, username: str, is_registered: bool = False) -> User:
        """Create a new user"""
        db_user = User(username=username, is_registered=is_registered)
        self.db.add(db_user)
        try:
            await self._commit()
        except IntegrityError as e:
            raise ConflictError(f"Username {username!r} is taken") from e
        try:
            await self.db.refresh(db_user)
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e
        return db_user

    async def get_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID"""
        query = select(User).filter(User.id == user_id)
        result = await self._execute(query)
        return result.scalar_one_or_none()

    async def is_registered(self, user_id: int) -> bool:
        """Registration status of a user, False for unknown ids"""
        query = select(User.is_registered).filter(User.id == user_id)
        result = await self._execute(query)
        return bool(result.scalar_one_or_none())

    async def mark_registered(self, user_id: int) -> bool:
        """Mark user as registered"""
        user = await self.get_by_id(user_id)
        if not user:
            return False

        user.is_registered = True
        try:
            await self._commit()
        except IntegrityError as e:
            raise StoreError(str(e.orig)) from e
        return True
