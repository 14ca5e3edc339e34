"""
Arbiter panel selection.

Rules:
- Panel size follows dispute priority (policy panel_sizes)
- Only active, non-banned users with an arbiter role are eligible
- ADMIN ranks ahead of MODERATOR (policy arbiter_roles order)
- No arbiter may sit on a dispute they reported or play in
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .config import get_default_policy
from .errors import InvalidArgumentError, NotFoundError
from .models import DisputePriority, UserRecord

logger = logging.getLogger(__name__)


def panel_size(priority, policy: Optional[Dict] = None) -> int:
    policy = policy or get_default_policy()
    try:
        priority = DisputePriority(priority)
    except ValueError:
        raise InvalidArgumentError(f"Unknown dispute priority: {priority!r}")
    return policy['panel_sizes'][priority.value]


def is_eligible(user: UserRecord, policy: Dict) -> bool:
    return user.is_active and not user.is_banned and user.role.value in policy['arbiter_roles']


def has_conflict(user: UserRecord, exclude_ids: Iterable[str]) -> Tuple[bool, Optional[str]]:
    """
    Comprehensive conflict check for an arbiter against a dispute.

    Returns:
        Tuple of (has_conflict, reason)
    """
    if user.id in set(exclude_ids):
        return True, "Reporter or participant of the disputed match"
    return False, None


def select_panel(candidates: Iterable[UserRecord], priority, policy: Optional[Dict] = None,
                 exclude_ids: Iterable[str] = ()) -> List[UserRecord]:
    """
    Pick up to panel_size(priority) arbiters, highest role first.

    Ties keep the candidate order. Raises NotFoundError when nobody is
    eligible; a short panel is returned with a warning.
    """
    policy = policy or get_default_policy()
    size = panel_size(priority, policy)
    role_rank = {role: rank for rank, role in enumerate(policy['arbiter_roles'])}
    exclude_ids = list(exclude_ids)

    pool = []
    for user in candidates:
        if not is_eligible(user, policy):
            continue
        conflicted, reason = has_conflict(user, exclude_ids)
        if conflicted:
            logger.info(f'Skipping arbiter {user.username}: {reason}')
            continue
        pool.append(user)

    if not pool:
        raise NotFoundError(f"No eligible arbiters available for a {DisputePriority(priority).value} dispute")

    pool.sort(key=lambda u: role_rank[u.role.value])
    panel = pool[:size]
    if len(panel) < size:
        logger.warning(f'Only {len(panel)} of {size} arbiters available for a '
                       f'{DisputePriority(priority).value} dispute')
    return panel
