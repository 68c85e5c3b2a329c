from befriend.models.user import User
from befriend.models.friendship import Friendship

__all__ = ["User", "Friendship"]
