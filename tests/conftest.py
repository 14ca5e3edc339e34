"""
Shared pytest fixtures for tourney engine tests.

Running tests:
    pytest tests/                  - full suite
    pytest tests/ -m "not slow"   - skip the threaded concurrency tests
"""
import pytest
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tourney.arbitration import ArbitrationService
from tourney.config import get_default_policy
from tourney.matches import MatchLifecycle
from tourney.models import Participant, Role, TournamentFormat, UserRecord
from tourney.notifications import NotificationSink
from tourney.providers import StaticIdentityProvider, StaticRatingProvider
from tourney.storage import Store
from tourney.tournaments import TournamentService


class RecordingNotifier(NotificationSink):
    """Collects every event as a (name, *args) tuple."""

    def __init__(self):
        self.events = []

    def match_ready(self, match_id):
        self.events.append(('match_ready', match_id))

    def dispute_assigned(self, dispute_id, arbiter_id):
        self.events.append(('dispute_assigned', dispute_id, arbiter_id))

    def dispute_resolved(self, dispute_id, decision):
        self.events.append(('dispute_resolved', dispute_id, decision))

    def named(self, name):
        return [e for e in self.events if e[0] == name]


@pytest.fixture
def policy():
    return get_default_policy()


@pytest.fixture
def store(tmp_path):
    """In-memory store with its lock files under tmp_path."""
    return Store(lock_dir=str(tmp_path / 'locks'), lock_timeout=10)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def ratings():
    return StaticRatingProvider()


@pytest.fixture
def identity():
    """Arbiter pool listed out of rank order, plus users who must never be picked."""
    return StaticIdentityProvider([
        UserRecord('mod1', role=Role.MODERATOR),
        UserRecord('admin1', role=Role.ADMIN),
        UserRecord('mod2', role=Role.MODERATOR),
        UserRecord('admin2', role=Role.ADMIN),
        UserRecord('mod3', role=Role.MODERATOR),
        UserRecord('mod4', role=Role.MODERATOR),
        UserRecord('mod-banned', role=Role.MODERATOR, is_banned=True),
        UserRecord('admin-inactive', role=Role.ADMIN, is_active=False),
        UserRecord('player1', role=Role.PLAYER),
    ])


@pytest.fixture
def lifecycle(store, policy, notifier):
    return MatchLifecycle(store, policy, notifier)


@pytest.fixture
def tournaments(store, ratings, policy, notifier, lifecycle):
    return TournamentService(store, ratings, policy, notifier, lifecycle)


@pytest.fixture
def arbitration(store, identity, policy, notifier, lifecycle):
    return ArbitrationService(store, identity, policy, notifier, lifecycle)


@pytest.fixture
def make_participants():
    """Build n unsaved participants p1..pn; by default p1 is rated highest."""
    def _make(n, ratings=None, tournament_id='t1'):
        participants = []
        for i in range(1, n + 1):
            rating = ratings[i - 1] if ratings else 2000 - i * 10
            participants.append(Participant(tournament_id, user_id=f'p{i}', rating=rating,
                                            registration_order=i))
        return participants
    return _make


@pytest.fixture
def setup_tournament(tournaments, ratings):
    """
    Create a tournament with users p1..pn registered in order, generate its
    brackets (elo seeding, so p1 is seed 1 by default) and optionally start it.
    """
    def _setup(n=4, format=TournamentFormat.SINGLE_ELIMINATION, start=True,
               requires_check_in=False, user_ratings=None, rng=None):
        tournament = tournaments.create_tournament(
            'Test Cup', format, organizer_id='organizer',
            max_participants=max(n, 2), requires_check_in=requires_check_in,
        )
        tournaments.open_registration(tournament.id)
        for i in range(1, n + 1):
            user_id = f'p{i}'
            if user_ratings and user_id in user_ratings:
                ratings.set_rating(user_id, user_ratings[user_id])
            else:
                ratings.set_rating(user_id, 2000 - i * 10)
            tournaments.register_participant(tournament.id, user_id=user_id)
        tournaments.close_registration(tournament.id)
        tournaments.generate_brackets(tournament.id, rng=rng)
        if start:
            tournaments.start_tournament(tournament.id)
        return tournament
    return _setup


@pytest.fixture
def find_match(store):
    """Look up a tournament's match by its code (R1-M1, W2-M1, L1-M1, GF, BR...)."""
    def _find(tournament_id, code):
        found = store.find('matches', tournament_id=tournament_id, match_code=code)
        assert len(found) == 1, f"expected one match {code}, found {found}"
        return found[0]
    return _find


@pytest.fixture
def participant_of(store):
    """Participant id of a registered user."""
    def _participant(tournament_id, user_id):
        found = store.find('participants', tournament_id=tournament_id, user_id=user_id)
        assert len(found) == 1
        return found[0].id
    return _participant


@pytest.fixture
def play(store, lifecycle):
    """Start a READY match and have both sides report the same score."""
    def _play(match_id, player1_score, player2_score):
        lifecycle.start_match(match_id)
        lifecycle.submit_result(match_id, 'reporter-a', player1_score, player2_score)
        lifecycle.submit_result(match_id, 'reporter-b', player1_score, player2_score)
        return store.get('matches', match_id)
    return _play
