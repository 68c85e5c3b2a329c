import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import and_, or_
from typing import Awaitable, Callable, Optional, Set

from befriend.core.config import Settings, settings as default_settings
from befriend.models.friendship import Friendship
from befriend.repositories.friendship import FriendshipRepository
from befriend.repositories.user import UserRepository
from befriend.schemas.friendship import FriendshipFailure, FriendshipResult
from befriend.utils.exceptions import ConflictError, ValidationError

logger = logging.getLogger(__name__)

RegistrationStatus = Callable[[int], Awaitable[bool]]

# Accepted and not blocked by either party
ACTIVE = (Friendship.pending == False, Friendship.blocker_id.is_(None))
PENDING = (Friendship.pending == True, Friendship.blocker_id.is_(None))


class FriendshipService:
    """Friendship state transitions and membership queries.

    Holds no state of its own: every call looks up the record for the
    unordered pair and performs at most one write through the repository.
    Business-rule violations come back as a rejected FriendshipResult;
    store failures propagate as StoreError.
    """

    def __init__(
        self,
        db: AsyncSession,
        registration_status: Optional[RegistrationStatus] = None,
        settings: Settings = default_settings,
    ):
        self.db = db
        self.repo = FriendshipRepository(db)
        self.registration_status = registration_status or UserRepository(db).is_registered
        self.settings = settings

    def _rejected(self, action: str, user_id: int, other_id: int, failure: FriendshipFailure) -> FriendshipResult:
        logger.info(f"{action} {user_id} -> {other_id} rejected: {failure.value}")
        return FriendshipResult.rejected(failure)

    async def find_relationship(self, user_id: int, other_id: int) -> Optional[Friendship]:
        """Friendship with other_id in either direction, or None"""
        return await self.repo.find_pair(user_id, other_id)

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    async def _create(self, action: str, user_id: int, other_id: int, **fields) -> FriendshipResult:
        if user_id == other_id:
            return self._rejected(action, user_id, other_id, FriendshipFailure.SELF_REFERENCE)
        if await self.find_relationship(user_id, other_id):
            return self._rejected(action, user_id, other_id, FriendshipFailure.ALREADY_CONNECTED)

        friend_registered = await self.registration_status(other_id)
        try:
            friendship = await self.repo.create(
                user_id, other_id, friend_registered=bool(friend_registered), **fields
            )
        except ConflictError:
            # Lost the race against a concurrent create for the same pair
            return self._rejected(action, user_id, other_id, FriendshipFailure.ALREADY_CONNECTED)

        logger.info(f"{action} {user_id} -> {other_id} created friendship {friendship.id}")
        return FriendshipResult.success(friendship)

    async def invite(self, user_id: int, other_id: int) -> FriendshipResult:
        """Send a friendship invitation awaiting approval by other_id"""
        return await self._create(
            "invite", user_id, other_id,
            pending=True,
            platform=self.settings.DEFAULT_INVITE_PLATFORM,
        )

    async def add_friend(
        self, user_id: int, other_id: int, platform: str, mutual_friends_count: int = 0
    ) -> FriendshipResult:
        """Record an already established connection, e.g. imported from another platform"""
        if mutual_friends_count < 0:
            raise ValidationError("mutual_friends_count must be non-negative")
        return await self._create(
            "add_friend", user_id, other_id,
            pending=False,
            platform=platform,
            mutual_friends_count=mutual_friends_count,
        )

    async def add_facebook_friend(self, user_id: int, other_id: int, mutual_friends_count: int = 0) -> FriendshipResult:
        return await self.add_friend(user_id, other_id, "facebook", mutual_friends_count)

    async def approve(self, user_id: int, other_id: int) -> FriendshipResult:
        """Accept the invitation other_id sent to user_id"""
        friendship = await self.find_relationship(user_id, other_id)
        if friendship is None:
            return self._rejected("approve", user_id, other_id, FriendshipFailure.NO_SUCH_RELATIONSHIP)
        if friendship.requester_id == user_id:
            return self._rejected("approve", user_id, other_id, FriendshipFailure.NOT_RECIPIENT)

        friendship = await self.repo.update_fields(friendship.id, pending=False)
        logger.info(f"approve {user_id} -> {other_id} accepted friendship {friendship.id}")
        return FriendshipResult.success(friendship)

    async def remove_friendship(self, user_id: int, other_id: int) -> FriendshipResult:
        """Delete the friendship whatever its state.

        Any relationship views the caller cached for either user are stale
        afterwards.
        """
        friendship = await self.find_relationship(user_id, other_id)
        if friendship is None:
            return self._rejected("remove_friendship", user_id, other_id, FriendshipFailure.NO_SUCH_RELATIONSHIP)

        result = FriendshipResult.success(friendship)
        if not await self.repo.delete(friendship.id):
            # Deleted by someone else since the lookup
            return self._rejected("remove_friendship", user_id, other_id, FriendshipFailure.NO_SUCH_RELATIONSHIP)
        logger.info(f"remove_friendship {user_id} -> {other_id} deleted friendship {result.relationship.id}")
        return result

    async def block_friend(self, user_id: int, other_id: int) -> FriendshipResult:
        friendship = await self.find_relationship(user_id, other_id)
        if friendship is None:
            return self._rejected("block_friend", user_id, other_id, FriendshipFailure.NO_SUCH_RELATIONSHIP)
        if not friendship.can_block(user_id):
            return self._rejected("block_friend", user_id, other_id, FriendshipFailure.BLOCK_NOT_PERMITTED)

        friendship = await self.repo.update_fields(friendship.id, blocker_id=user_id)
        logger.info(f"block_friend {user_id} -> {other_id} blocked friendship {friendship.id}")
        return FriendshipResult.success(friendship)

    async def unblock_friend(self, user_id: int, other_id: int) -> FriendshipResult:
        """Only the user who blocked may unblock"""
        friendship = await self.find_relationship(user_id, other_id)
        if friendship is None:
            return self._rejected("unblock_friend", user_id, other_id, FriendshipFailure.NO_SUCH_RELATIONSHIP)
        if not friendship.can_unblock(user_id):
            return self._rejected("unblock_friend", user_id, other_id, FriendshipFailure.UNBLOCK_NOT_PERMITTED)

        friendship = await self.repo.update_fields(friendship.id, blocker_id=None)
        logger.info(f"unblock_friend {user_id} -> {other_id} unblocked friendship {friendship.id}")
        return FriendshipResult.success(friendship)

    async def refresh_registration_status(self, user_id: int) -> int:
        """Flag every friendship addressed to user_id as having a registered friend"""
        updated = await self.repo.bulk_update_where_recipient_is(user_id, friend_registered=True)
        logger.info(f"Marked {updated} friendships addressed to {user_id} as registered")
        return updated

    # ------------------------------------------------------------------
    # Derived queries
    # ------------------------------------------------------------------

    async def invited(self, user_id: int) -> Set[int]:
        """Users who accepted an invitation from user_id"""
        return set(await self.repo.ids_where_requester_is(user_id, *ACTIVE))

    async def invited_by(self, user_id: int) -> Set[int]:
        """Users whose invitation user_id accepted"""
        return set(await self.repo.ids_where_recipient_is(user_id, *ACTIVE))

    async def pending_invited(self, user_id: int) -> Set[int]:
        return set(await self.repo.ids_where_requester_is(user_id, *PENDING))

    async def pending_invited_by(self, user_id: int) -> Set[int]:
        return set(await self.repo.ids_where_recipient_is(user_id, *PENDING))

    async def friends(self, user_id: int) -> Set[int]:
        return await self.invited(user_id) | await self.invited_by(user_id)

    async def total_friends(self, user_id: int) -> int:
        """Friend count without loading ids; each pair is counted from one direction only"""
        outgoing = await self.repo.count_where_requester_is(user_id, *ACTIVE)
        incoming = await self.repo.count_where_recipient_is(user_id, *ACTIVE)
        return outgoing + incoming

    @staticmethod
    def _blockade_criteria(user_id: int):
        """Criteria for friendships blocked by user_id against the other party"""
        outgoing = and_(Friendship.blocker_id == user_id, Friendship.recipient_id != Friendship.blocker_id)
        incoming = and_(Friendship.blocker_id == user_id, Friendship.requester_id != Friendship.blocker_id)
        return outgoing, incoming

    @staticmethod
    def _blockade_by_criteria(user_id: int):
        """Criteria for friendships where the other party blocked user_id"""
        outgoing = and_(Friendship.blocker_id.is_not(None), Friendship.blocker_id == Friendship.recipient_id)
        incoming = and_(Friendship.blocker_id.is_not(None), Friendship.blocker_id == Friendship.requester_id)
        return outgoing, incoming

    async def blockades(self, user_id: int) -> Set[int]:
        """Users blocked by user_id"""
        outgoing, incoming = self._blockade_criteria(user_id)
        return (
            set(await self.repo.ids_where_requester_is(user_id, outgoing))
            | set(await self.repo.ids_where_recipient_is(user_id, incoming))
        )

    async def blockades_by(self, user_id: int) -> Set[int]:
        """Users who blocked user_id"""
        outgoing, incoming = self._blockade_by_criteria(user_id)
        return (
            set(await self.repo.ids_where_requester_is(user_id, outgoing))
            | set(await self.repo.ids_where_recipient_is(user_id, incoming))
        )

    def _blocked_criteria(self, user_id: int):
        blockade_out, blockade_in = self._blockade_criteria(user_id)
        by_out, by_in = self._blockade_by_criteria(user_id)
        return or_(blockade_out, by_out), or_(blockade_in, by_in)

    async def blocked_friends(self, user_id: int) -> Set[int]:
        """Users on either side of a block involving user_id"""
        outgoing, incoming = self._blocked_criteria(user_id)
        return (
            set(await self.repo.ids_where_requester_is(user_id, outgoing))
            | set(await self.repo.ids_where_recipient_is(user_id, incoming))
        )

    async def total_blocked_friends(self, user_id: int) -> int:
        outgoing, incoming = self._blocked_criteria(user_id)
        return (
            await self.repo.count_where_requester_is(user_id, outgoing)
            + await self.repo.count_where_recipient_is(user_id, incoming)
        )

    async def is_blocked_friend(self, user_id: int, other_id: int) -> bool:
        return other_id in await self.blocked_friends(user_id)

    async def is_friend_with(self, user_id: int, other_id: int) -> bool:
        return other_id in await self.friends(user_id)

    async def is_connected_with(self, user_id: int, other_id: int) -> bool:
        """True for any friendship record, pending or blocked included"""
        return await self.find_relationship(user_id, other_id) is not None

    async def is_invited_by(self, user_id: int, other_id: int) -> bool:
        """True if other_id created the friendship with user_id"""
        friendship = await self.find_relationship(user_id, other_id)
        return friendship is not None and friendship.requester_id == other_id

    async def is_invited(self, user_id: int, other_id: int) -> bool:
        """True if user_id created the friendship with other_id"""
        friendship = await self.find_relationship(user_id, other_id)
        return friendship is not None and friendship.recipient_id == other_id

    async def common_friends_with(self, user_id: int, other_id: int) -> Set[int]:
        return await self.friends(user_id) & await self.friends(other_id)
