"""
Bracket generation entry point: dispatches a tournament format to its
generator and returns the brackets and matches to persist.
"""
import logging
import math
import random
from typing import List, Optional, Sequence

from .double_elimination import generate_double_elimination
from .elimination import generate_single_elimination, settle_byes
from .errors import InvalidArgumentError, UnsupportedFormatError
from .models import Bracket, Match, Participant, TournamentFormat

logger = logging.getLogger(__name__)


class BracketPlan:
    def __init__(self, brackets: List[Bracket], matches: List[Match], total_rounds: int):
        self.brackets = brackets
        self.matches = matches
        self.total_rounds = total_rounds

    def __repr__(self):
        return f"BracketPlan(brackets={len(self.brackets)}, matches={len(self.matches)}, total_rounds={self.total_rounds})"


class FormatGenerator:
    def __init__(self, participants: Sequence[Participant], tournament_id: str,
                 rng: Optional[random.Random] = None):
        self.participants = list(participants)
        self.tournament_id = tournament_id
        self.rng = rng or random.Random()

    def round_robin(self) -> BracketPlan:
        # Every pair meets once, all in round 1
        bracket = Bracket(self.tournament_id, "Round Robin", TournamentFormat.ROUND_ROBIN.value,
                          total_rounds=1)
        matches = []
        num_participants = len(self.participants)
        for i in range(num_participants):
            for j in range(i + 1, num_participants):
                match = Match(self.tournament_id, bracket.id, 1, len(matches),
                              match_code=f"RR-M{len(matches) + 1}", round_name="Round Robin")
                match.slots[0].participant_id = self.participants[i].id
                match.slots[1].participant_id = self.participants[j].id
                matches.append(match)
        return BracketPlan([bracket], matches, 1)

    def swiss(self) -> BracketPlan:
        # Round 1 only; pairing ignores seeding
        total_rounds = math.ceil(math.log2(len(self.participants)))
        bracket = Bracket(self.tournament_id, "Swiss", TournamentFormat.SWISS.value,
                          total_rounds=total_rounds)
        pool = list(self.participants)
        self.rng.shuffle(pool)
        matches = []
        for position, i in enumerate(range(0, len(pool), 2)):
            pair = pool[i:i + 2]
            match = Match(self.tournament_id, bracket.id, 1, position,
                          match_code=f"S1-M{position + 1}", round_name="Swiss Round 1",
                          is_bye=len(pair) == 1)
            for slot, participant in enumerate(pair):
                match.slots[slot].participant_id = participant.id
            if match.is_bye:
                match.slots[1].void = True
            matches.append(match)
        settle_byes(matches)
        return BracketPlan([bracket], matches, total_rounds)

    def single_elimination(self) -> BracketPlan:
        bracket, matches, total_rounds = generate_single_elimination(self.participants, self.tournament_id)
        return BracketPlan([bracket], matches, total_rounds)

    def double_elimination(self) -> BracketPlan:
        brackets, matches, total_rounds = generate_double_elimination(self.participants, self.tournament_id)
        return BracketPlan(brackets, matches, total_rounds)


def generate(format, seeded_participants: Sequence[Participant], tournament_id: str,
             rng: Optional[random.Random] = None) -> BracketPlan:
    """
    Build brackets and matches for a seeded participant list.

    Every match starts PENDING except byes, which are COMPLETED with the
    lone participant as winner.
    """
    try:
        tournament_format = TournamentFormat(format)
    except ValueError:
        raise UnsupportedFormatError(f"Unknown tournament format: {format!r}")
    if len(seeded_participants) < 2:
        raise InvalidArgumentError(
            f"Bracket generation needs at least 2 participants, got {len(seeded_participants)}"
        )

    generator = FormatGenerator(seeded_participants, tournament_id, rng)
    builders = {
        TournamentFormat.SINGLE_ELIMINATION: generator.single_elimination,
        TournamentFormat.DOUBLE_ELIMINATION: generator.double_elimination,
        TournamentFormat.ROUND_ROBIN: generator.round_robin,
        TournamentFormat.SWISS: generator.swiss,
    }
    builder = builders.get(tournament_format)
    if builder is None:
        raise UnsupportedFormatError(f"Bracket generation for {tournament_format.value} is not implemented")

    plan = builder()
    logger.info(f'Generated {tournament_format.value} plan for tournament {tournament_id}: '
                f'{len(plan.matches)} matches, {plan.total_rounds} rounds')
    return plan
