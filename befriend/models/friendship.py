from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, UniqueConstraint, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from befriend.core.config import settings
from befriend.core.database import Base


def make_pair_key(user1_id: int, user2_id: int) -> str:
    """Order-independent key for the pair {user1_id, user2_id}"""
    low, high = sorted((user1_id, user2_id))
    return f"{low}:{high}"


class Friendship(Base):
    __tablename__ = settings.FRIENDSHIP_TABLE

    id = Column(Integer, primary_key=True, index=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    recipient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    pair_key = Column(String, nullable=False)
    pending = Column(Boolean, nullable=False, default=True)
    blocker_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    # Passive metadata
    platform = Column(String, nullable=True)
    mutual_friends_count = Column(Integer, nullable=False, default=0)
    friend_registered = Column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    requester = relationship("User", foreign_keys=[requester_id], backref="sent_friendships")
    recipient = relationship("User", foreign_keys=[recipient_id], backref="received_friendships")
    blocker = relationship("User", foreign_keys=[blocker_id])

    # Constraints
    __table_args__ = (
        UniqueConstraint("pair_key", name=f"uq_{settings.FRIENDSHIP_TABLE}_pair"),
        CheckConstraint("requester_id <> recipient_id", name=f"ck_{settings.FRIENDSHIP_TABLE}_distinct"),
        CheckConstraint("mutual_friends_count >= 0", name=f"ck_{settings.FRIENDSHIP_TABLE}_mutual_count"),
    )

    def can_block(self, user_id: int) -> bool:
        return self.blocker_id is None or self.blocker_id == user_id

    def can_unblock(self, user_id: int) -> bool:
        return self.blocker_id is not None and self.blocker_id == user_id

    def __repr__(self):
        return (
            f"<Friendship(requester_id={self.requester_id}, recipient_id={self.recipient_id}, "
            f"pending={self.pending}, blocker_id={self.blocker_id})>"
        )
