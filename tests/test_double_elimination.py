"""
Tests for double elimination bracket functionality.
"""
import pytest
from collections import Counter

from tourney.double_elimination import (
    generate_double_elimination,
    get_losers_round_name,
    get_winners_round_name,
)
from tourney.errors import InvalidArgumentError
from tourney.models import MatchStatus, TournamentFormat, TournamentStatus


def by_code(matches):
    return {m.match_code: m for m in matches}


class TestLosersRoundName:
    """Tests for get_losers_round_name."""

    def test_losers_final(self):
        """Last round (round_num == total - 1) is Losers Final."""
        assert get_losers_round_name(4, 5) == "Losers Final"
        assert get_losers_round_name(2, 3) == "Losers Final"

    def test_losers_semifinal(self):
        """Second to last is Losers Semifinal."""
        assert get_losers_round_name(3, 5) == "Losers Semifinal"
        assert get_losers_round_name(1, 3) == "Losers Semifinal"

    def test_losers_numbered_round(self):
        """Earlier rounds are numbered."""
        assert get_losers_round_name(0, 5) == "Losers Round 1"
        assert get_losers_round_name(2, 5) == "Losers Round 3"


class TestWinnersRoundName:
    """Tests for get_winners_round_name."""

    def test_winners_final(self):
        """Two entrants means Winners Final."""
        assert get_winners_round_name(2, 16) == "Winners Final"

    def test_winners_semifinal(self):
        """Four entrants means Winners Semifinal."""
        assert get_winners_round_name(4, 8) == "Winners Semifinal"

    def test_winners_round_of_n(self):
        """Larger counts are Round of N."""
        assert get_winners_round_name(16, 16) == "Winners Round of 16"


class TestDoubleEliminationStructure:
    """Tests for generated bracket shape."""

    def test_four_participants(self, make_participants):
        """Test the full wiring of a four-seed bracket."""
        participants = make_participants(4)
        brackets, matches, total_rounds = generate_double_elimination(participants, 't1')
        codes = by_code(matches)
        winners, losers = brackets

        assert total_rounds == 2
        assert (winners.name, losers.name) == ("Winners", "Losers")
        assert set(codes) == {'W1-M1', 'W1-M2', 'W2-M1', 'L1-M1', 'L2-M1', 'GF', 'BR'}
        assert codes['W1-M1'].loser_to == (codes['L1-M1'].id, 0)
        assert codes['W1-M2'].loser_to == (codes['L1-M1'].id, 1)
        assert codes['L1-M1'].winner_to == (codes['L2-M1'].id, 0)
        assert codes['W2-M1'].loser_to == (codes['L2-M1'].id, 1)
        assert codes['W2-M1'].winner_to == (codes['GF'].id, 0)
        assert codes['L2-M1'].winner_to == (codes['GF'].id, 1)
        assert codes['GF'].winner_to == (codes['BR'].id, 0)
        assert codes['GF'].loser_to == (codes['BR'].id, 1)
        assert codes['BR'].is_conditional
        assert codes['GF'].bracket_id == winners.id
        assert codes['L1-M1'].round_name == "Losers Semifinal"
        assert codes['L2-M1'].round_name == "Losers Final"

    def test_two_participants(self, make_participants):
        """Test with no losers matches the only loser goes straight to the Grand Final."""
        brackets, matches, _ = generate_double_elimination(make_participants(2), 't1')
        codes = by_code(matches)
        assert set(codes) == {'W1-M1', 'GF', 'BR'}
        assert codes['W1-M1'].winner_to == (codes['GF'].id, 0)
        assert codes['W1-M1'].loser_to == (codes['GF'].id, 1)
        assert brackets[1].total_rounds == 0

    @pytest.mark.parametrize("n", range(2, 18))
    def test_match_counts(self, make_participants, n):
        """Test n-1 winners matches and n-2 losers matches are contested."""
        brackets, matches, _ = generate_double_elimination(make_participants(n), 't1')
        winners, losers = brackets
        contested_winners = [m for m in matches if m.bracket_id == winners.id
                             and not m.is_bye and m.match_code not in ('GF', 'BR')]
        contested_losers = [m for m in matches if m.bracket_id == losers.id and not m.is_bye]
        assert len(contested_winners) == n - 1
        assert len(contested_losers) == n - 2

    @pytest.mark.parametrize("n,losers_rounds", [(2, 0), (4, 2), (8, 4), (16, 6)])
    def test_power_of_two_losers_rounds(self, make_participants, n, losers_rounds):
        """Test full brackets alternate minor and major losers rounds."""
        brackets, _, _ = generate_double_elimination(make_participants(n), 't1')
        assert brackets[1].total_rounds == losers_rounds

    @pytest.mark.parametrize("n", range(2, 18))
    def test_every_slot_has_one_feeder(self, make_participants, n):
        """Test each open slot outside winners round 1 is fed by exactly one pointer."""
        brackets, matches, _ = generate_double_elimination(make_participants(n), 't1')
        winners = brackets[0]
        inbound = Counter()
        for m in matches:
            for feed in (m.winner_to, m.loser_to):
                if feed:
                    inbound[feed] += 1
        for m in matches:
            for s in m.slots:
                expected = 0 if s.void or (m.bracket_id == winners.id and m.round == 1) else 1
                assert inbound[(m.id, s.slot)] == expected, f"{m.match_code} slot {s.slot}"

    @pytest.mark.parametrize("n", range(2, 18))
    def test_byes_drop_nobody(self, make_participants, n):
        """Test only contested winners matches send a loser down."""
        brackets, matches, _ = generate_double_elimination(make_participants(n), 't1')
        winners = brackets[0]
        for m in matches:
            if m.bracket_id == winners.id and m.match_code not in ('GF', 'BR'):
                assert (m.loser_to is not None) == (not m.is_bye)

    def test_too_few_participants(self, make_participants):
        """Test a single participant cannot form a bracket."""
        with pytest.raises(InvalidArgumentError):
            generate_double_elimination(make_participants(1), 't1')


class TestDoubleEliminationFlow:
    """End-to-end play through the match lifecycle."""

    def test_winners_champion_takes_grand_final(self, setup_tournament, find_match, participant_of,
                                                play, tournaments):
        """Test a four-seed event where the unbeaten side wins and the reset is cancelled."""
        tournament = setup_tournament(4, TournamentFormat.DOUBLE_ELIMINATION)
        tid = tournament.id
        p = {u: participant_of(tid, u) for u in ('p1', 'p2', 'p3', 'p4')}

        play(find_match(tid, 'W1-M1').id, 2, 0)     # p1 beats p2
        play(find_match(tid, 'W1-M2').id, 2, 1)     # p3 beats p4
        assert find_match(tid, 'L1-M1').participant_ids() == [p['p2'], p['p4']]
        assert find_match(tid, 'L1-M1').status == MatchStatus.READY

        play(find_match(tid, 'W2-M1').id, 2, 0)     # p1 beats p3
        play(find_match(tid, 'L1-M1').id, 2, 0)     # p2 beats p4
        assert find_match(tid, 'L2-M1').participant_ids() == [p['p2'], p['p3']]

        play(find_match(tid, 'L2-M1').id, 0, 2)     # p3 beats p2
        grand_final = find_match(tid, 'GF')
        assert grand_final.participant_ids() == [p['p1'], p['p3']]

        play(grand_final.id, 3, 1)
        assert find_match(tid, 'BR').status == MatchStatus.CANCELLED
        assert tournaments.complete_tournament(tid).status == TournamentStatus.COMPLETED

    def test_losers_champion_forces_reset(self, setup_tournament, find_match, participant_of, play):
        """Test the bracket reset is played when the losers champion wins the Grand Final."""
        tournament = setup_tournament(2, TournamentFormat.DOUBLE_ELIMINATION)
        tid = tournament.id
        p1, p2 = participant_of(tid, 'p1'), participant_of(tid, 'p2')

        play(find_match(tid, 'W1-M1').id, 2, 0)
        grand_final = find_match(tid, 'GF')
        assert grand_final.participant_ids() == [p1, p2]

        play(grand_final.id, 0, 2)
        reset = find_match(tid, 'BR')
        assert reset.participant_ids() == [p2, p1]
        assert reset.status == MatchStatus.READY

        play(reset.id, 1, 2)
        assert reset.winner_id == p1
