"""
Participant seeding before bracket construction.
"""
import random
from typing import List, Optional, Sequence

from .errors import InvalidArgumentError
from .models import Participant, SeedingMethod


def seed(participants: Sequence[Participant], method, rng: Optional[random.Random] = None,
         manual_order: Optional[Sequence[str]] = None) -> List[Participant]:
    """
    Order participants for bracket construction.

    - elo: highest rating first; equal ratings keep registration order
    - random: shuffled with rng (inject a seeded Random for reproducible runs)
    - manual: caller's order, or manual_order (participant ids) if given

    Returns a new list; the input is not modified.
    """
    participants = list(participants)
    if len(participants) < 2:
        raise InvalidArgumentError(f"Seeding needs at least 2 participants, got {len(participants)}")
    try:
        method = SeedingMethod(method)
    except ValueError:
        raise InvalidArgumentError(f"Unknown seeding method: {method!r}")

    if method == SeedingMethod.ELO:
        by_registration = sorted(participants, key=lambda p: p.registration_order)
        # sorted() is stable, so ties stay in registration order
        return sorted(by_registration, key=lambda p: p.rating, reverse=True)

    if method == SeedingMethod.RANDOM:
        rng = rng or random.Random()
        shuffled = list(participants)
        rng.shuffle(shuffled)
        return shuffled

    if manual_order is None:
        return participants
    return _apply_manual_order(participants, manual_order)


def _apply_manual_order(participants: List[Participant], manual_order: Sequence[str]) -> List[Participant]:
    if len(manual_order) != len(participants):
        raise InvalidArgumentError(
            f"Manual seeding lists {len(manual_order)} entries for {len(participants)} participants"
        )
    by_id = {p.id: p for p in participants}
    if len(set(manual_order)) != len(manual_order):
        raise InvalidArgumentError("Manual seeding lists a participant more than once")
    missing = [pid for pid in manual_order if pid not in by_id]
    if missing:
        raise InvalidArgumentError(f"Manual seeding references unknown participants: {missing}")
    return [by_id[pid] for pid in manual_order]
