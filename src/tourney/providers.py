"""
Identity/role and rating providers consumed by the engine.

The in-memory implementations back tests and single-process deployments;
a real service layer plugs in its user directory and rating system.
"""
from typing import Dict, Iterable, List, Optional

from .errors import NotFoundError
from .models import UserRecord


class IdentityProvider:
    """Role and active/banned status for user ids."""

    def get_user(self, user_id: str) -> UserRecord:
        raise NotImplementedError

    def list_users(self) -> List[UserRecord]:
        raise NotImplementedError


class RatingProvider:
    """Current rating for a user or team id."""

    def get_rating(self, entrant_id: str) -> float:
        raise NotImplementedError


class StaticIdentityProvider(IdentityProvider):
    def __init__(self, users: Optional[Iterable[UserRecord]] = None):
        self._users: Dict[str, UserRecord] = {}
        for user in users or []:
            self.add(user)

    def add(self, user: UserRecord):
        self._users[user.id] = user

    def get_user(self, user_id: str) -> UserRecord:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def list_users(self) -> List[UserRecord]:
        return list(self._users.values())


class StaticRatingProvider(RatingProvider):
    def __init__(self, ratings: Optional[Dict[str, float]] = None, default: float = 1200):
        self._ratings = dict(ratings or {})
        self.default = default

    def set_rating(self, entrant_id: str, rating: float):
        self._ratings[entrant_id] = rating

    def get_rating(self, entrant_id: str) -> float:
        return self._ratings.get(entrant_id, self.default)
