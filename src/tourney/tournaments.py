"""
Tournament lifecycle, registration and bracket generation.

Registration and generation run under the tournament:<id> lock so the
capacity check and the one-shot generation guard cannot race.
"""
import logging
import random
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from .config import get_default_policy
from .errors import CapacityError, ConflictError, InvalidArgumentError, InvalidStateError, NotFoundError
from .formats import BracketPlan, generate
from .matches import MatchLifecycle
from .models import (
    MatchStatus, Participant, ParticipantStatus, PRE_LIVE_STATUSES, Tournament,
    TournamentFormat, TournamentStatus,
)
from .notifications import LoggingNotifier, NotificationSink
from .providers import RatingProvider, StaticRatingProvider
from .seeding import seed

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 3
MAX_NAME_LENGTH = 100
MAX_PARTICIPANTS = 1024

TRANSITIONS = {
    TournamentStatus.DRAFT: [TournamentStatus.REGISTRATION_OPEN, TournamentStatus.CANCELLED],
    TournamentStatus.REGISTRATION_OPEN: [TournamentStatus.REGISTRATION_CLOSED, TournamentStatus.CANCELLED],
    TournamentStatus.REGISTRATION_CLOSED: [TournamentStatus.CHECK_IN, TournamentStatus.CANCELLED],
    TournamentStatus.CHECK_IN: [TournamentStatus.LIVE, TournamentStatus.CANCELLED],
    TournamentStatus.LIVE: [TournamentStatus.COMPLETED],
    TournamentStatus.COMPLETED: [],
    TournamentStatus.CANCELLED: [],
}


class TournamentService:
    def __init__(self, store, ratings: Optional[RatingProvider] = None, policy: Optional[Dict] = None,
                 notifier: Optional[NotificationSink] = None,
                 lifecycle: Optional[MatchLifecycle] = None):
        self.store = store
        self.policy = policy or get_default_policy()
        self.ratings = ratings or StaticRatingProvider(default=self.policy['default_rating'])
        self.notifier = notifier or LoggingNotifier()
        self.lifecycle = lifecycle or MatchLifecycle(store, self.policy, self.notifier)

    def _transition(self, tournament: Tournament, target: TournamentStatus):
        if target not in TRANSITIONS[tournament.status]:
            raise InvalidStateError(
                f"Cannot move tournament {tournament.name} from {tournament.status.value} to {target.value}"
            )
        logger.info(f'Tournament {tournament.name} {tournament.status.value} -> {target.value}')
        tournament.status = target

    def _set_status(self, tournament_id: str, target: TournamentStatus) -> Tournament:
        with self.store.lock('tournament', tournament_id):
            tournament = self.get_tournament(tournament_id)
            self._transition(tournament, target)
            self.store.commit()
        return tournament

    # ===== tournaments =====

    def create_tournament(self, name: str, format, organizer_id: Optional[str] = None,
                          min_participants: int = 2, max_participants: int = 16,
                          is_team_tournament: bool = False, requires_check_in: bool = False) -> Tournament:
        if not isinstance(name, str) or not MIN_NAME_LENGTH <= len(name.strip()) <= MAX_NAME_LENGTH:
            raise InvalidArgumentError(
                f"Tournament name must be {MIN_NAME_LENGTH}-{MAX_NAME_LENGTH} characters"
            )
        try:
            format = TournamentFormat(format)
        except ValueError:
            raise InvalidArgumentError(f"Unknown tournament format: {format!r}")
        if not 2 <= min_participants <= max_participants <= MAX_PARTICIPANTS:
            raise InvalidArgumentError(
                f"Participant limits must satisfy 2 <= min <= max <= {MAX_PARTICIPANTS}, "
                f"got min={min_participants}, max={max_participants}"
            )

        tournament = Tournament(
            name.strip(), format,
            min_participants=min_participants,
            max_participants=max_participants,
            organizer_id=organizer_id,
            is_team_tournament=is_team_tournament,
            requires_check_in=requires_check_in,
        )
        self.store.add('tournaments', tournament)
        self.store.commit()
        logger.info(f'Created tournament {tournament.name} ({format.value})')
        return tournament

    def get_tournament(self, tournament_id: str) -> Tournament:
        return self.store.get('tournaments', tournament_id)

    def open_registration(self, tournament_id: str) -> Tournament:
        return self._set_status(tournament_id, TournamentStatus.REGISTRATION_OPEN)

    def close_registration(self, tournament_id: str) -> Tournament:
        return self._set_status(tournament_id, TournamentStatus.REGISTRATION_CLOSED)

    def cancel_tournament(self, tournament_id: str) -> Tournament:
        with self.store.lock('tournament', tournament_id):
            tournament = self.get_tournament(tournament_id)
            if tournament.status not in PRE_LIVE_STATUSES:
                raise InvalidStateError(f"Tournament {tournament.name} is {tournament.status.value}; "
                                        f"only tournaments that have not started can be cancelled")
            self._transition(tournament, TournamentStatus.CANCELLED)
            self.store.commit()
        return tournament

    def start_tournament(self, tournament_id: str) -> Tournament:
        """CHECK_IN -> LIVE, then ready every playable match."""
        tournament = self._set_status(tournament_id, TournamentStatus.LIVE)
        self.lifecycle.promote_ready(tournament_id)
        return tournament

    def complete_tournament(self, tournament_id: str) -> Tournament:
        with self.store.lock('tournament', tournament_id):
            tournament = self.get_tournament(tournament_id)
            unfinished = self.store.find(
                'matches',
                lambda m: m.status not in (MatchStatus.COMPLETED, MatchStatus.CANCELLED),
                tournament_id=tournament_id,
            )
            if unfinished:
                raise InvalidStateError(
                    f"Tournament {tournament.name} still has {len(unfinished)} unfinished matches"
                )
            self._transition(tournament, TournamentStatus.COMPLETED)
            self.store.commit()
        return tournament

    # ===== participants =====

    def list_participants(self, tournament_id: str) -> List[Participant]:
        participants = self.store.find('participants', tournament_id=tournament_id)
        return sorted(participants, key=lambda p: p.registration_order)

    def get_participant(self, tournament_id: str, participant_id: str) -> Participant:
        participant = self.store.get('participants', participant_id)
        if participant.tournament_id != tournament_id:
            raise NotFoundError(f"Participant {participant_id} not found in tournament {tournament_id}")
        return participant

    def register_participant(self, tournament_id: str, user_id: Optional[str] = None,
                             team_id: Optional[str] = None) -> Participant:
        """
        Register a user (or a team, for team tournaments) while registration
        is open. The entrant's current rating is captured now.
        """
        with self.store.lock('tournament', tournament_id):
            tournament = self.get_tournament(tournament_id)
            if tournament.is_team_tournament and not team_id:
                raise InvalidArgumentError("Team tournaments register teams; team_id is required")
            if not tournament.is_team_tournament and not user_id:
                raise InvalidArgumentError("user_id is required")
            if tournament.status != TournamentStatus.REGISTRATION_OPEN:
                raise InvalidStateError(f"Registration for {tournament.name} is not open "
                                        f"({tournament.status.value})")

            existing = self.list_participants(tournament_id)
            entrant_id = team_id if tournament.is_team_tournament else user_id
            if any(p.entrant_id == entrant_id for p in existing):
                raise ConflictError(f"{entrant_id} is already registered for {tournament.name}")
            if tournament.current_participants >= tournament.max_participants:
                raise CapacityError(f"Tournament {tournament.name} is full "
                                    f"({tournament.max_participants} participants)")

            order = max((p.registration_order for p in existing), default=0) + 1
            participant = Participant(
                tournament_id,
                user_id=user_id,
                team_id=team_id,
                rating=self.ratings.get_rating(entrant_id),
                registration_order=order,
            )
            self.store.add('participants', participant)
            tournament.current_participants += 1
            self.store.commit()

        logger.info(f'Registered {entrant_id} for {tournament.name} '
                    f'({tournament.current_participants}/{tournament.max_participants})')
        return participant

    def unregister_participant(self, tournament_id: str, participant_id: str):
        with self.store.lock('tournament', tournament_id):
            tournament = self.get_tournament(tournament_id)
            if tournament.brackets_generated:
                raise InvalidStateError(f"Brackets for {tournament.name} exist; participants can no longer leave")
            self.get_participant(tournament_id, participant_id)
            self.store.remove('participants', participant_id)
            tournament.current_participants -= 1
            self.store.commit()

    def refresh_rating(self, tournament_id: str, participant_id: str) -> Participant:
        """Re-read a participant's rating; ratings freeze once brackets exist."""
        with self.store.lock('tournament', tournament_id):
            tournament = self.get_tournament(tournament_id)
            participant = self.get_participant(tournament_id, participant_id)
            if tournament.brackets_generated or participant.rating_locked:
                raise InvalidStateError(f"Ratings for {tournament.name} are locked")
            participant.rating = self.ratings.get_rating(participant.entrant_id)
            self.store.commit()
        return participant

    def check_in(self, tournament_id: str, participant_id: str) -> Participant:
        with self.store.lock('tournament', tournament_id):
            tournament = self.get_tournament(tournament_id)
            if tournament.status not in (TournamentStatus.CHECK_IN, TournamentStatus.LIVE):
                raise InvalidStateError(f"Check-in for {tournament.name} is not open ({tournament.status.value})")
            participant = self.get_participant(tournament_id, participant_id)
            if participant.status == ParticipantStatus.DISQUALIFIED:
                raise InvalidStateError(f"Participant {participant.entrant_id} is disqualified")
            participant.status = ParticipantStatus.CHECKED_IN
            participant.checked_in_at = datetime.now()
            self.store.commit()

        if tournament.status == TournamentStatus.LIVE:
            self.lifecycle.promote_ready(tournament_id)
        return participant

    # ===== brackets =====

    def generate_brackets(self, tournament_id: str, seeding_method='elo',
                          manual_order: Optional[Sequence[str]] = None,
                          rng: Optional[random.Random] = None) -> BracketPlan:
        """
        Seed the registered participants and build every bracket and match.

        Only once per tournament: a second call raises ConflictError. The
        tournament then moves to CHECK_IN with ratings locked.
        """
        with self.store.lock('tournament', tournament_id):
            tournament = self.get_tournament(tournament_id)
            if tournament.brackets_generated:
                raise ConflictError(f"Brackets for {tournament.name} have already been generated")
            if tournament.status != TournamentStatus.REGISTRATION_CLOSED:
                raise InvalidStateError(f"Brackets are generated after registration closes; "
                                        f"{tournament.name} is {tournament.status.value}")
            participants = self.list_participants(tournament_id)
            if len(participants) < tournament.min_participants:
                raise InvalidStateError(f"{tournament.name} needs at least {tournament.min_participants} "
                                        f"participants, has {len(participants)}")

            seeded = seed(participants, seeding_method, rng=rng, manual_order=manual_order)
            plan = generate(tournament.format, seeded, tournament.id, rng=rng)

            for position, participant in enumerate(seeded, start=1):
                participant.seed = position
                participant.rating_locked = True
            for bracket in plan.brackets:
                self.store.add('brackets', bracket)
            for match in plan.matches:
                self.store.add('matches', match)
            tournament.brackets_generated = True
            self._transition(tournament, TournamentStatus.CHECK_IN)
            self.store.commit()

        logger.info(f'Generated brackets for {tournament.name}: {plan}')
        return plan

    def get_bracket_view(self, tournament_id: str) -> Dict:
        """
        Brackets with their matches grouped by round for display.

        Returns dict with:
        - 'tournament': tournament record
        - 'brackets': list of {'name', 'kind', 'total_rounds', 'rounds'} where
          'rounds' maps round name -> list of match records in position order
        """
        tournament = self.get_tournament(tournament_id)
        brackets = sorted(self.store.find('brackets', tournament_id=tournament_id),
                          key=lambda b: (b.round, b.position))
        view = []
        for bracket in brackets:
            matches = sorted(self.store.find('matches', bracket_id=bracket.id),
                             key=lambda m: (m.round, m.position))
            rounds: Dict[str, List[Dict]] = {}
            for match in matches:
                rounds.setdefault(match.round_name or f"Round {match.round}", []).append(match.to_dict())
            view.append({
                'name': bracket.name,
                'kind': bracket.kind,
                'total_rounds': bracket.total_rounds,
                'rounds': rounds,
            })
        return {'tournament': tournament.to_dict(), 'brackets': view}
