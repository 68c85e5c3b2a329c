import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import or_, and_, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from typing import List, Optional

from befriend.models.friendship import Friendship, make_pair_key
from befriend.utils.exceptions import ConflictError, NotFoundError, StoreError

logger = logging.getLogger(__name__)


class FriendshipRepository:
    """Relationship store backed by the friendships table.

    Directional queries take extra SQLAlchemy criteria over Friendship
    columns; the caller composes them, this class only applies them.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _execute(self, stmt, write: bool = False):
        try:
            return await self.db.execute(stmt)
        except SQLAlchemyError as e:
            if write:
                await self.db.rollback()
            logger.error(f"Friendship query failed: {e}")
            raise StoreError(str(e)) from e

    async def _refresh(self, friendship: Friendship) -> None:
        try:
            await self.db.refresh(friendship)
        except SQLAlchemyError as e:
            logger.error(f"Friendship refresh failed: {e}")
            raise StoreError(str(e)) from e

    async def _commit(self):
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Friendship commit failed: {e}")
            raise StoreError(str(e)) from e

    async def get_by_id(self, friendship_id: int) -> Optional[Friendship]:
        """Get a friendship by ID"""
        stmt = select(Friendship).where(Friendship.id == friendship_id)
        result = await self._execute(stmt)
        return result.scalar_one_or_none()

    async def find_pair(self, user1_id: int, user2_id: int) -> Optional[Friendship]:
        """Get the friendship for the unordered pair, in either direction"""
        stmt = select(Friendship).where(
            or_(
                and_(Friendship.requester_id == user1_id, Friendship.recipient_id == user2_id),
                and_(Friendship.requester_id == user2_id, Friendship.recipient_id == user1_id)
            )
        )
        result = await self._execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, requester_id: int, recipient_id: int, **fields) -> Friendship:
        """Insert a friendship; raises ConflictError if the pair already has one"""
        friendship = Friendship(
            requester_id=requester_id,
            recipient_id=recipient_id,
            pair_key=make_pair_key(requester_id, recipient_id),
            **fields
        )
        self.db.add(friendship)
        try:
            await self._commit()
        except IntegrityError as e:
            logger.info(f"Friendship {requester_id} -> {recipient_id} rejected by store: {e.orig}")
            raise ConflictError(f"Friendship between {requester_id} and {recipient_id} already exists") from e
        await self._refresh(friendship)
        return friendship

    async def update_fields(self, friendship_id: int, **fields) -> Friendship:
        """Partial update of a friendship"""
        friendship = await self.get_by_id(friendship_id)
        if not friendship:
            raise NotFoundError(f"Friendship {friendship_id} not found")

        for field, value in fields.items():
            setattr(friendship, field, value)

        try:
            await self._commit()
        except IntegrityError as e:
            raise ConflictError(str(e.orig)) from e
        await self._refresh(friendship)
        return friendship

    async def delete(self, friendship_id: int) -> bool:
        """Delete a friendship"""
        friendship = await self.get_by_id(friendship_id)
        if not friendship:
            return False

        try:
            await self.db.delete(friendship)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Friendship delete failed: {e}")
            raise StoreError(str(e)) from e
        try:
            await self._commit()
        except IntegrityError as e:
            raise StoreError(str(e.orig)) from e
        return True

    async def ids_where_requester_is(self, user_id: int, *criteria) -> List[int]:
        """Recipient ids of friendships created by user_id"""
        stmt = select(Friendship.recipient_id).where(Friendship.requester_id == user_id, *criteria)
        result = await self._execute(stmt)
        return list(result.scalars().all())

    async def ids_where_recipient_is(self, user_id: int, *criteria) -> List[int]:
        """Requester ids of friendships addressed to user_id"""
        stmt = select(Friendship.requester_id).where(Friendship.recipient_id == user_id, *criteria)
        result = await self._execute(stmt)
        return list(result.scalars().all())

    async def count_where_requester_is(self, user_id: int, *criteria) -> int:
        stmt = select(func.count()).select_from(Friendship).where(Friendship.requester_id == user_id, *criteria)
        result = await self._execute(stmt)
        return result.scalar_one()

    async def count_where_recipient_is(self, user_id: int, *criteria) -> int:
        stmt = select(func.count()).select_from(Friendship).where(Friendship.recipient_id == user_id, *criteria)
        result = await self._execute(stmt)
        return result.scalar_one()

    async def bulk_update_where_recipient_is(self, user_id: int, **fields) -> int:
        """Update fields on every friendship addressed to user_id, returns affected rows"""
        stmt = update(Friendship).where(Friendship.recipient_id == user_id).values(**fields)
        result = await self._execute(stmt, write=True)
        try:
            await self._commit()
        except IntegrityError as e:
            raise StoreError(str(e.orig)) from e
        return result.rowcount
