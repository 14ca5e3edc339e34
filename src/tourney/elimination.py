"""
Single elimination bracket generation and winner advancement.

Pairing is adjacent by seed order (seed 1 vs 2, 3 vs 4, ...). An odd entrant
count in any round leaves the last match of that round as an explicit bye:
one seat, the other slot void. Round r position p feeds round r+1 position
p // 2, slot p % 2, so the whole tree is allocated up front and winners move
along winner_to pointers as matches complete.
"""
import math
from datetime import datetime
from typing import Callable, Dict, List, Sequence

from .errors import InvalidArgumentError, InvalidStateError
from .models import Bracket, Match, MatchStatus, Participant, TournamentFormat


def get_round_name(teams_in_round: int, total_teams: int) -> str:
    """Get the name of a round based on number of teams."""
    if teams_in_round == 2:
        return "Final"
    elif teams_in_round == 4:
        return "Semifinal"
    elif teams_in_round == 8:
        return "Quarterfinal"
    else:
        return f"Round of {teams_in_round}"


def calculate_bracket_size(num_teams: int) -> int:
    """Calculate the bracket size (next power of 2)."""
    if num_teams <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_teams))


def calculate_total_rounds(num_teams: int) -> int:
    """ceil(log2(n)) rounds are needed to reduce n entrants to one."""
    if num_teams < 2:
        return 0
    return math.ceil(math.log2(num_teams))


def calculate_round_sizes(num_teams: int) -> List[int]:
    """Entrants per round: [n, ceil(n/2), ...] down to the final pair."""
    sizes = []
    entrants = num_teams
    while entrants > 1:
        sizes.append(entrants)
        entrants = (entrants + 1) // 2
    return sizes


def create_elimination_rounds(num_teams: int, tournament_id: str, bracket: Bracket,
                              code_prefix: str = "R",
                              round_name: Callable[[int, int], str] = get_round_name) -> List[List[Match]]:
    """
    Allocate every match of an elimination tree with winner_to pointers.

    Returns a list of rounds, each a list of matches in position order.
    Slots are left empty; see seat_first_round().
    """
    sizes = calculate_round_sizes(num_teams)
    bracket_size = calculate_bracket_size(num_teams)
    rounds: List[List[Match]] = []

    for round_num, entrants in enumerate(sizes, start=1):
        match_count = (entrants + 1) // 2
        name = round_name(calculate_bracket_size(entrants), bracket_size)
        round_matches = []
        for position in range(match_count):
            is_bye = entrants % 2 == 1 and position == match_count - 1
            match = Match(
                tournament_id, bracket.id, round_num, position,
                match_code=f"{code_prefix}{round_num}-M{position + 1}",
                round_name=name,
                is_bye=is_bye,
            )
            if is_bye:
                match.slots[1].void = True
            round_matches.append(match)

        if rounds:
            for position, feeder in enumerate(rounds[-1]):
                feeder.winner_to = (round_matches[position // 2].id, position % 2)
        rounds.append(round_matches)

    return rounds


def seat_first_round(first_round: List[Match], seeded: Sequence[Participant]):
    """Place seeds into round one: seed[0] vs seed[1], seed[2] vs seed[3], ..."""
    for index, participant in enumerate(seeded):
        first_round[index // 2].slots[index % 2].participant_id = participant.id


def generate_single_elimination(seeded: Sequence[Participant], tournament_id: str):
    """Build the Main bracket; returns (bracket, matches, total_rounds)."""
    if len(seeded) < 2:
        raise InvalidArgumentError(f"Single elimination needs at least 2 participants, got {len(seeded)}")

    total_rounds = calculate_total_rounds(len(seeded))
    bracket = Bracket(tournament_id, "Main", TournamentFormat.SINGLE_ELIMINATION.value,
                      round=1, position=0, total_rounds=total_rounds)
    rounds = create_elimination_rounds(len(seeded), tournament_id, bracket)
    seat_first_round(rounds[0], seeded)
    matches = [m for round_matches in rounds for m in round_matches]
    settle_byes(matches)
    return bracket, matches, total_rounds


def settle_byes(matches: List[Match], now: datetime = None):
    """Complete round-one byes at generation time, cascading along winner_to."""
    now = now or datetime.now()
    by_id = {m.id: m for m in matches}
    for match in matches:
        settle(by_id, match, now)


# ===== advancement =====

def _is_walkover(match: Match) -> bool:
    return match.status == MatchStatus.COMPLETED and len(match.participant_ids()) <= 1


def settle(matches_by_id: Dict[str, Match], match: Match, now: datetime) -> List[Match]:
    """
    Resolve a not-yet-played match whose open slots are all void: one
    remaining entrant wins by walkover, none cancels it. Returns every match
    changed as a result.
    """
    if match.status not in (MatchStatus.PENDING, MatchStatus.READY):
        return []
    if any(not s.is_filled and not s.void for s in match.slots):
        return []

    filled = match.participant_ids()
    if not filled:
        match.status = MatchStatus.CANCELLED
        return [match] + void_feeds(matches_by_id, match, now)
    if len(filled) == 1:
        match.status = MatchStatus.COMPLETED
        match.winner_id = filled[0]
        match.completed_at = now
        return [match] + advance(matches_by_id, match, now)
    return []


def advance(matches_by_id: Dict[str, Match], match: Match, now: datetime) -> List[Match]:
    """
    Move a completed match's winner along winner_to and its loser along
    loser_to. A walkover has no loser, so its loser_to slot is voided.
    A conditional destination (bracket reset) is cancelled when the slot-0
    entrant of this match wins.
    """
    if match.winner_to:
        dest = matches_by_id[match.winner_to[0]]
        if dest.is_conditional and match.slots[0].participant_id == match.winner_id:
            dest.status = MatchStatus.CANCELLED
            return [dest]

    loser_id = next((pid for pid in match.participant_ids() if pid != match.winner_id), None)
    touched = []
    for feed, participant_id in ((match.winner_to, match.winner_id), (match.loser_to, loser_id)):
        if feed is None:
            continue
        dest = matches_by_id[feed[0]]
        slot = dest.slots[feed[1]]
        slot.participant_id = participant_id
        slot.void = participant_id is None
        touched.append(dest)

    for dest in list(touched):
        touched.extend(settle(matches_by_id, dest, now))
    return touched


def void_feeds(matches_by_id: Dict[str, Match], match: Match, now: datetime) -> List[Match]:
    """A cancelled match sends nobody forward; void the slots it fed."""
    touched = []
    for feed in (match.winner_to, match.loser_to):
        if feed is None:
            continue
        dest = matches_by_id[feed[0]]
        slot = dest.slots[feed[1]]
        slot.participant_id = None
        slot.void = True
        touched.append(dest)
        touched.extend(settle(matches_by_id, dest, now))
    return touched


def check_withdrawable(matches_by_id: Dict[str, Match], match: Match):
    """Raise InvalidStateError if a match fed by this one has already been played."""
    for feed in (match.winner_to, match.loser_to):
        if feed is None:
            continue
        dest = matches_by_id[feed[0]]
        if dest.status in (MatchStatus.PENDING, MatchStatus.READY):
            continue
        if dest.status == MatchStatus.CANCELLED and dest.is_conditional:
            continue
        if _is_walkover(dest):
            check_withdrawable(matches_by_id, dest)
            continue
        raise InvalidStateError(
            f"Match {dest.match_code} is already {dest.status.value}; "
            f"cannot change the outcome of {match.match_code}"
        )


def withdraw(matches_by_id: Dict[str, Match], match: Match) -> List[Match]:
    """Undo advance() for a match whose outcome is being replayed or reversed."""
    check_withdrawable(matches_by_id, match)
    touched = []
    for feed in (match.winner_to, match.loser_to):
        if feed is None:
            continue
        dest = matches_by_id[feed[0]]
        if dest.status == MatchStatus.CANCELLED and dest.is_conditional:
            dest.status = MatchStatus.PENDING
            touched.append(dest)
            continue
        if _is_walkover(dest):
            touched.extend(withdraw(matches_by_id, dest))
            dest.status = MatchStatus.PENDING
            dest.winner_id = None
            dest.completed_at = None
        slot = dest.slots[feed[1]]
        slot.participant_id = None
        slot.void = False
        if dest.status == MatchStatus.READY:
            dest.status = MatchStatus.PENDING
        touched.append(dest)
    return touched
