"""
Double elimination bracket generation.

In double elimination:
- Participants must lose twice to be eliminated
- Winners Bracket: participants that haven't lost yet
- Losers Bracket: participants that have lost once
- Grand Final: Winners bracket champion (slot 0) vs Losers bracket champion (slot 1)
- Bracket Reset: If the losers bracket champion wins the Grand Final, a final
  match decides the champion; otherwise it is cancelled

The losers bracket is built from the winners bracket it hangs off. Each
contested winners match drops its loser into a losers slot through loser_to;
winners byes drop nobody.
"""
from typing import List, Sequence, Tuple

from .elimination import (
    calculate_total_rounds,
    create_elimination_rounds,
    seat_first_round,
    settle_byes,
)
from .errors import InvalidArgumentError
from .models import Bracket, Match, Participant

WINNER = 'winner'
LOSER = 'loser'

# (match, WINNER | LOSER): the entrant that comes out of a match
Source = Tuple[Match, str]


def get_losers_round_name(round_num: int, total_losers_rounds: int) -> str:
    """Get the name for a losers bracket round (0-indexed)."""
    rounds_from_end = total_losers_rounds - round_num - 1
    if rounds_from_end == 0:
        return "Losers Final"
    elif rounds_from_end == 1:
        return "Losers Semifinal"
    else:
        return f"Losers Round {round_num + 1}"


def get_winners_round_name(teams_in_round: int, bracket_size: int) -> str:
    """Get the name for a winners bracket round."""
    if teams_in_round == 2:
        return "Winners Final"
    elif teams_in_round == 4:
        return "Winners Semifinal"
    elif teams_in_round == 8:
        return "Winners Quarterfinal"
    else:
        return f"Winners Round of {teams_in_round}"


def _feed_from(source: Source, feed: Tuple[str, int]):
    match, outcome = source
    if outcome == WINNER:
        match.winner_to = feed
    else:
        match.loser_to = feed


def _pair_adjacent(entrants: List[Source]) -> List[List[Source]]:
    return [entrants[i:i + 2] for i in range(0, len(entrants), 2)]


def _generate_losers_bracket(winners_rounds: List[List[Match]], tournament_id: str,
                             bracket: Bracket) -> Tuple[List[List[Match]], Source]:
    """
    Allocate the losers bracket and wire every loser_to pointer into it.

    Returns the losers rounds and the source of the losers champion. When
    the losers bracket has a single entrant (two participants overall) no
    losers match exists and the champion is the loser of the only winners
    match.
    """
    rounds: List[List[Match]] = []

    def play(groups: List[List[Source]]) -> List[Source]:
        round_num = len(rounds) + 1
        round_matches = []
        for position, group in enumerate(groups):
            match = Match(
                tournament_id, bracket.id, round_num, position,
                match_code=f"L{round_num}-M{position + 1}",
                is_bye=len(group) == 1,
            )
            if match.is_bye:
                match.slots[1].void = True
            for slot, source in enumerate(group):
                _feed_from(source, (match.id, slot))
            round_matches.append(match)
        rounds.append(round_matches)
        return [(m, WINNER) for m in round_matches]

    def minor(entrants: List[Source]) -> List[Source]:
        if len(entrants) < 2:
            return entrants
        return play(_pair_adjacent(entrants))

    def major(survivors: List[Source], drop_ins: List[Source]) -> List[Source]:
        if len(survivors) + len(drop_ins) < 2:
            return survivors + drop_ins
        paired = min(len(survivors), len(drop_ins))
        groups = [[survivors[i], drop_ins[i]] for i in range(paired)]
        groups += _pair_adjacent(survivors[paired:] + drop_ins[paired:])
        return play(groups)

    survivors: List[Source] = []
    for index, winners_round in enumerate(winners_rounds):
        drop_ins = [(m, LOSER) for m in winners_round if not m.is_bye]
        if index == 0:
            survivors = minor(drop_ins)
            continue
        while len(survivors) > len(drop_ins):
            survivors = minor(survivors)
        survivors = major(survivors, drop_ins)

    while len(survivors) > 1:
        survivors = minor(survivors)

    for round_num, round_matches in enumerate(rounds):
        name = get_losers_round_name(round_num, len(rounds))
        for match in round_matches:
            match.round_name = name

    return rounds, survivors[0]


def generate_double_elimination(seeded: Sequence[Participant], tournament_id: str):
    """
    Build the Winners and Losers brackets plus Grand Final and Bracket Reset.

    Returns (brackets, matches, total_rounds) where total_rounds counts the
    winners rounds.
    """
    if len(seeded) < 2:
        raise InvalidArgumentError(f"Double elimination needs at least 2 participants, got {len(seeded)}")

    total_rounds = calculate_total_rounds(len(seeded))
    winners = Bracket(tournament_id, "Winners", "WINNERS", round=1, position=0, total_rounds=total_rounds)
    losers = Bracket(tournament_id, "Losers", "LOSERS", round=1, position=1)

    winners_rounds = create_elimination_rounds(
        len(seeded), tournament_id, winners, code_prefix="W", round_name=get_winners_round_name
    )
    seat_first_round(winners_rounds[0], seeded)
    losers_rounds, losers_champion = _generate_losers_bracket(winners_rounds, tournament_id, losers)
    losers.total_rounds = len(losers_rounds)

    grand_final = Match(tournament_id, winners.id, total_rounds + 1, 0,
                        match_code="GF", round_name="Grand Final")
    bracket_reset = Match(tournament_id, winners.id, total_rounds + 2, 0,
                          match_code="BR", round_name="Bracket Reset", is_conditional=True)
    winners_rounds[-1][0].winner_to = (grand_final.id, 0)
    _feed_from(losers_champion, (grand_final.id, 1))
    grand_final.winner_to = (bracket_reset.id, 0)
    grand_final.loser_to = (bracket_reset.id, 1)

    matches = [m for r in winners_rounds for m in r]
    matches += [m for r in losers_rounds for m in r]
    matches += [grand_final, bracket_reset]
    settle_byes(matches)
    return [winners, losers], matches, total_rounds
