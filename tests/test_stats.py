"""
Tests for tournament and arbitration statistics.
"""
import pytest

from tourney.stats import arbitration_pool, arbitration_stats, tournament_stats

UPSET_RATINGS = {'p1': 1800, 'p2': 1550, 'p3': 1500, 'p4': 1450}


class TestTournamentStats:
    """Tests for tournament_stats."""

    def test_before_play(self, setup_tournament, store):
        """Test a fresh bracket has nothing completed."""
        tournament = setup_tournament(4)
        stats = tournament_stats(store, tournament.id)
        assert stats['participants'] == 4
        assert stats['total_matches'] == 3
        assert stats['completed_matches'] == 0
        assert stats['pending_matches'] == 3
        assert stats['average_match_minutes'] is None
        assert stats['top_performers'] == []
        assert stats['upsets'] == 0

    def test_byes_not_counted(self, setup_tournament, store):
        """Test a structural bye is not a match."""
        tournament = setup_tournament(3)
        stats = tournament_stats(store, tournament.id)
        assert stats['total_matches'] == 2
        assert stats['completed_matches'] == 0

    def test_completed_tournament(self, setup_tournament, find_match, participant_of, play, store):
        """Test counts, performers and upsets after a full bracket."""
        tournament = setup_tournament(4, user_ratings=UPSET_RATINGS)
        tid = tournament.id
        play(find_match(tid, 'R1-M1').id, 0, 2)     # p2 beats p1: 250 below, an upset
        play(find_match(tid, 'R1-M2').id, 2, 1)     # p3 beats p4: favourite wins
        play(find_match(tid, 'R2-M1').id, 2, 0)     # p2 beats p3: 50 below, not an upset

        stats = tournament_stats(store, tid)
        assert stats['completed_matches'] == 3
        assert stats['pending_matches'] == 0
        assert stats['average_match_minutes'] >= 0
        assert stats['upsets'] == 1

        performers = stats['top_performers']
        assert [p['entrant_id'] for p in performers] == ['p2', 'p3', 'p1', 'p4']
        assert performers[0] == {
            'participant_id': participant_of(tid, 'p2'),
            'entrant_id': 'p2',
            'wins': 2,
            'losses': 0,
            'win_rate': 1.0,
        }
        assert performers[1]['win_rate'] == 0.5

    def test_upset_gap_from_policy(self, setup_tournament, find_match, play, store, policy):
        """Test the upset threshold comes from the policy."""
        tournament = setup_tournament(4, user_ratings=UPSET_RATINGS)
        play(find_match(tournament.id, 'R1-M1').id, 0, 2)
        policy['upset_rating_gap'] = 300
        assert tournament_stats(store, tournament.id, policy)['upsets'] == 0


class TestArbitrationStats:
    """Tests for arbitration_stats and arbitration_pool."""

    def test_empty(self, store):
        """Test no disputes gives zero counts and no rates."""
        stats = arbitration_stats(store)
        assert stats['total_disputes'] == 0
        assert stats['average_resolution_hours'] is None
        assert stats['consensus_rate'] is None
        assert stats['top_categories'] == []

    def test_mixed_outcomes(self, setup_tournament, find_match, play, arbitration, store):
        """Test resolved, escalated and active disputes are counted separately."""
        tournament = setup_tournament(4)
        tid = tournament.id
        first = play(find_match(tid, 'R1-M1').id, 2, 0)
        second = play(find_match(tid, 'R1-M2').id, 2, 0)

        resolved = arbitration.submit_dispute(tid, first.id, 'p2', 'WRONG_RESULT', 'Bad score')
        for arbiter_id in ('admin1', 'admin2', 'mod1'):
            arbitration.submit_vote(resolved.id, arbiter_id, 'APPROVE_ORIGINAL', 0.9)

        escalated = arbitration.submit_dispute(tid, second.id, 'p4', 'WRONG_RESULT', 'Bad score')
        for arbiter_id, decision in (('admin1', 'APPROVE_ORIGINAL'), ('admin2', 'REMATCH'),
                                     ('mod1', 'APPROVE_DISPUTE')):
            arbitration.submit_vote(escalated.id, arbiter_id, decision, 0.9)

        arbitration.submit_dispute(tid, None, 'p3', 'OTHER', 'Stream was down')

        stats = arbitration_stats(store, tid)
        assert stats['total_disputes'] == 3
        assert stats['resolved_disputes'] == 1
        assert stats['escalated_disputes'] == 1
        assert stats['active_disputes'] == 1
        assert stats['consensus_rate'] == 0.5
        assert stats['average_resolution_hours'] >= 0
        assert stats['top_categories'] == [
            {'category': 'WRONG_RESULT', 'count': 2},
            {'category': 'OTHER', 'count': 1},
        ]
        assert arbitration_stats(store, 'another-tournament')['total_disputes'] == 0

    def test_pool(self, setup_tournament, arbitration, identity, store):
        """Test slots are arbiters times capacity minus active disputes."""
        tournament = setup_tournament(2)
        arbitration.submit_dispute(tournament.id, None, 'p1', 'OTHER', 'Stream was down')
        pool = arbitration_pool(store, identity)
        assert pool == {'arbiters': 6, 'active_disputes': 1, 'available_slots': 17}

    def test_pool_never_negative(self, setup_tournament, arbitration, identity, store, policy):
        """Test an overloaded pool reports zero slots."""
        tournament = setup_tournament(2)
        arbitration.submit_dispute(tournament.id, None, 'p1', 'OTHER', 'Stream was down')
        policy['arbiter_capacity'] = 0
        assert arbitration_pool(store, identity, policy)['available_slots'] == 0
