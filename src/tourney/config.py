"""
Engine policy: consensus threshold, panel sizes, lock timeouts and triage
keywords, loaded from YAML and merged over the defaults.
"""
import os
import logging
from typing import Dict, Optional

import yaml

from .errors import InvalidArgumentError

logger = logging.getLogger(__name__)

POLICY_FILE_ENV = 'TOURNEY_POLICY_FILE'
DATA_DIR_ENV = 'TOURNEY_DATA_DIR'


def get_default_policy() -> Dict:
    """Return default policy."""
    return {
        'consensus_threshold': 0.6,
        'panel_sizes': {
            'URGENT': 5,
            'HIGH': 3,
            'MEDIUM': 2,
            'LOW': 1,
        },
        'arbiter_roles': ['ADMIN', 'MODERATOR'],
        'arbiter_capacity': 3,
        'lock_timeout_seconds': 10,
        'auto_validate_confidence': 0.8,
        'default_rating': 1200,
        'upset_rating_gap': 200,
        'urgent_keywords': ['cheat', 'hack', 'exploit', 'fraud'],
        'high_keywords': ['wrong', 'incorrect', 'unfair', 'violation'],
    }


def validate_policy(policy: Dict) -> Dict:
    threshold = policy['consensus_threshold']
    if not isinstance(threshold, (int, float)) or not 0 < threshold <= 1:
        raise InvalidArgumentError(f"consensus_threshold must be in (0, 1], got {threshold!r}")
    for priority in ('URGENT', 'HIGH', 'MEDIUM', 'LOW'):
        size = policy['panel_sizes'].get(priority)
        if not isinstance(size, int) or size < 1:
            raise InvalidArgumentError(f"panel_sizes.{priority} must be a positive integer, got {size!r}")
    if not policy['arbiter_roles']:
        raise InvalidArgumentError("arbiter_roles must name at least one role")
    if policy['lock_timeout_seconds'] <= 0:
        raise InvalidArgumentError("lock_timeout_seconds must be positive")
    return policy


def load_policy(path: Optional[str] = None) -> Dict:
    """Load policy from YAML file, merging with defaults.

    Falls back to $TOURNEY_POLICY_FILE when no path is given; a missing or
    empty file yields the defaults.
    """
    defaults = get_default_policy()
    path = path or os.environ.get(POLICY_FILE_ENV)
    if not path or not os.path.exists(path):
        return defaults
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    if not data:
        return defaults
    if not isinstance(data, dict):
        raise InvalidArgumentError(f"Policy file {path} must contain a mapping")
    # Merge with defaults to ensure all keys exist
    for key, value in defaults.items():
        if key not in data:
            data[key] = value
        elif isinstance(value, dict):
            data[key] = {**value, **(data[key] or {})}
    logger.info(f'Loaded policy from {path}')
    return validate_policy(data)


def default_data_dir() -> Optional[str]:
    return os.environ.get(DATA_DIR_ENV)
