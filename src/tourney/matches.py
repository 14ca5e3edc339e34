"""
Match lifecycle: readiness, results, disputes, cancellation and rematches.

All mutations of a tournament's matches happen under the
bracket:<tournament_id> lock so advancement into downstream slots is never
interleaved with another writer.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from .config import get_default_policy
from .elimination import advance, check_withdrawable, void_feeds, withdraw
from .errors import InvalidArgumentError, InvalidStateError, NotFoundError
from .models import (
    Match, MatchResult, MatchStatus, ParticipantStatus, ResultStatus, Tournament,
    TournamentFormat, TournamentStatus,
)
from .notifications import LoggingNotifier, NotificationSink, emit

logger = logging.getLogger(__name__)

AUTO_VALIDATOR = 'AUTO'

# Brackets whose matches must produce a winner
ELIMINATION_KINDS = (TournamentFormat.SINGLE_ELIMINATION.value, 'WINNERS', 'LOSERS')


def _check_score(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidArgumentError(f"{name} must be a non-negative integer, got {value!r}")
    return value


def check_confidence(value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 1:
        raise InvalidArgumentError(f"confidence must be a number in [0, 1], got {value!r}")
    return float(value)


class MatchLifecycle:
    TRANSITIONS = {
        MatchStatus.PENDING: [MatchStatus.READY, MatchStatus.CANCELLED],
        MatchStatus.READY: [MatchStatus.LIVE, MatchStatus.CANCELLED],
        MatchStatus.LIVE: [MatchStatus.COMPLETED, MatchStatus.DISPUTED, MatchStatus.CANCELLED],
        MatchStatus.COMPLETED: [MatchStatus.DISPUTED, MatchStatus.PENDING],
        MatchStatus.DISPUTED: [MatchStatus.COMPLETED, MatchStatus.PENDING, MatchStatus.CANCELLED,
                               MatchStatus.LIVE],
        MatchStatus.CANCELLED: [],
    }

    def __init__(self, store, policy: Optional[Dict] = None,
                 notifier: Optional[NotificationSink] = None):
        self.store = store
        self.policy = policy or get_default_policy()
        self.notifier = notifier or LoggingNotifier()

    # ===== lookups =====

    def get_match(self, match_id: str) -> Match:
        return self.store.get('matches', match_id)

    def get_results(self, match_id: str) -> List[MatchResult]:
        return self.store.find('results', match_id=match_id)

    def get_validated_result(self, match_id: str) -> Optional[MatchResult]:
        validated = self.store.find('results', match_id=match_id, status=ResultStatus.VALIDATED)
        return validated[0] if validated else None

    def _get_result(self, match: Match, result_id: str) -> MatchResult:
        result = self.store.get('results', result_id)
        if result.match_id != match.id:
            raise NotFoundError(f"Match result {result_id} not found for match {match.match_code}")
        return result

    def _matches_by_id(self, tournament_id: str) -> Dict[str, Match]:
        return {m.id: m for m in self.store.find('matches', tournament_id=tournament_id)}

    def _lock(self, match: Match):
        return self.store.lock('bracket', match.tournament_id)

    # ===== transitions =====

    def can_transition(self, current: MatchStatus, target: MatchStatus) -> bool:
        return target in self.TRANSITIONS.get(current, [])

    def _transition(self, match: Match, target: MatchStatus):
        if not self.can_transition(match.status, target):
            raise InvalidStateError(
                f"Cannot move match {match.match_code} from {match.status.value} to {target.value}"
            )
        logger.info(f'Match {match.match_code} {match.status.value} -> {target.value}')
        match.status = target

    def _is_eligible(self, match: Match, tournament: Tournament) -> bool:
        if match.status != MatchStatus.PENDING or not match.is_full:
            return False
        if tournament.requires_check_in:
            for participant_id in match.participant_ids():
                participant = self.store.get('participants', participant_id)
                if participant.status != ParticipantStatus.CHECKED_IN:
                    return False
        return True

    def _promote(self, tournament: Tournament, matches: List[Match]) -> List[Match]:
        """READY every eligible match in matches; only a LIVE tournament plays."""
        if tournament.status != TournamentStatus.LIVE:
            return []
        promoted = []
        seen = set()
        for match in matches:
            if match.id in seen:
                continue
            seen.add(match.id)
            if self._is_eligible(match, tournament):
                self._transition(match, MatchStatus.READY)
                promoted.append(match)
        return promoted

    def _announce(self, matches: List[Match]):
        for match in matches:
            emit(self.notifier, 'match_ready', match.id)

    def mark_ready(self, match_id: str) -> Match:
        """PENDING -> READY once every slot is filled (and checked in, if required)."""
        match = self.get_match(match_id)
        with self._lock(match):
            tournament = self.store.get('tournaments', match.tournament_id)
            if match.status != MatchStatus.PENDING:
                raise InvalidStateError(f"Match {match.match_code} is {match.status.value}, not PENDING")
            if not match.is_full:
                raise InvalidStateError(f"Match {match.match_code} is still waiting for participants")
            if not self._is_eligible(match, tournament):
                raise InvalidStateError(f"Match {match.match_code} has participants not checked in")
            self._transition(match, MatchStatus.READY)
            self.store.commit()
        self._announce([match])
        return match

    def promote_ready(self, tournament_id: str) -> List[Match]:
        """Ready every eligible PENDING match of a LIVE tournament."""
        tournament = self.store.get('tournaments', tournament_id)
        with self.store.lock('bracket', tournament_id):
            promoted = self._promote(tournament, self.store.find('matches', tournament_id=tournament_id))
            self.store.commit()
        self._announce(promoted)
        return promoted

    def start_match(self, match_id: str) -> Match:
        match = self.get_match(match_id)
        with self._lock(match):
            tournament = self.store.get('tournaments', match.tournament_id)
            if tournament.status != TournamentStatus.LIVE:
                raise InvalidStateError(f"Tournament {tournament.name} is {tournament.status.value}, not LIVE")
            self._transition(match, MatchStatus.LIVE)
            match.started_at = datetime.now()
            self.store.commit()
        return match

    # ===== results =====

    def _draw_forbidden(self, match: Match) -> bool:
        if match.feeds_forward:
            return True
        bracket = self.store.maybe_get('brackets', match.bracket_id)
        return bracket is not None and bracket.kind in ELIMINATION_KINDS

    def _record_result(self, match_id: str, submitted_by: str, player1_score: int, player2_score: int,
                       confidence: Optional[float] = None, oracle: bool = False) -> MatchResult:
        match = self.get_match(match_id)
        promoted = []
        with self._lock(match):
            if match.status not in (MatchStatus.LIVE, MatchStatus.DISPUTED, MatchStatus.COMPLETED):
                raise InvalidStateError(
                    f"Match {match.match_code} is {match.status.value}; results need a LIVE, "
                    f"DISPUTED or COMPLETED match"
                )
            if player1_score == player2_score and self._draw_forbidden(match):
                raise InvalidArgumentError(f"Match {match.match_code} cannot end in a draw")

            earlier = self.get_results(match.id)
            result = MatchResult(match.id, submitted_by, player1_score, player2_score, confidence=confidence)
            self.store.add('results', result)
            logger.info(f'Result {player1_score}-{player2_score} submitted for match {match.match_code} '
                        f'by {submitted_by}')

            if match.status == MatchStatus.LIVE and not any(r.status == ResultStatus.VALIDATED for r in earlier):
                agreed = any(
                    r.status == ResultStatus.PENDING
                    and r.submitted_by != submitted_by
                    and r.player1_score == player1_score
                    and r.player2_score == player2_score
                    for r in earlier
                )
                confident = oracle and confidence > self.policy['auto_validate_confidence']
                if agreed or confident:
                    promoted = self._apply_validated(match, result, AUTO_VALIDATOR)
            self.store.commit()
        self._announce(promoted)
        return result

    def submit_result(self, match_id: str, submitted_by: str, player1_score: int,
                      player2_score: int) -> MatchResult:
        """
        Record a PENDING result. It is validated automatically when the match
        is LIVE, nothing is validated yet, and a different submitter already
        reported the same score.
        """
        _check_score(player1_score, 'player1_score')
        _check_score(player2_score, 'player2_score')
        return self._record_result(match_id, submitted_by, player1_score, player2_score)

    def submit_scored_result(self, match_id: str, submitted_by: str, payload: Dict) -> MatchResult:
        """
        Record a result read by the screenshot oracle.

        payload is {'player1Score': int, 'player2Score': int, 'confidence': float};
        a confidence above auto_validate_confidence validates it outright.
        """
        if not isinstance(payload, dict):
            raise InvalidArgumentError(f"Scored result payload must be a mapping, got {type(payload).__name__}")
        missing = [key for key in ('player1Score', 'player2Score', 'confidence') if key not in payload]
        if missing:
            raise InvalidArgumentError(f"Scored result payload is missing {missing}")
        player1_score = _check_score(payload['player1Score'], 'player1Score')
        player2_score = _check_score(payload['player2Score'], 'player2Score')
        confidence = check_confidence(payload['confidence'])
        return self._record_result(match_id, submitted_by, player1_score, player2_score,
                                   confidence=confidence, oracle=True)

    def validate_result(self, match_id: str, result_id: str, validated_by: str) -> MatchResult:
        """Make result_id the match's validated result, superseding any earlier one."""
        match = self.get_match(match_id)
        with self._lock(match):
            result = self._get_result(match, result_id)
            if result.status not in (ResultStatus.PENDING, ResultStatus.DISPUTED):
                raise InvalidStateError(f"Result {result_id} is {result.status.value} and cannot be validated")
            if match.status not in (MatchStatus.LIVE, MatchStatus.COMPLETED, MatchStatus.DISPUTED):
                raise InvalidStateError(f"Match {match.match_code} is {match.status.value}; nothing to validate")
            if result.winning_slot is None and self._draw_forbidden(match):
                raise InvalidArgumentError(f"Match {match.match_code} cannot end in a draw")
            promoted = self._apply_validated(match, result, validated_by)
            self.store.commit()
        self._announce(promoted)
        return result

    def reject_result(self, match_id: str, result_id: str) -> MatchResult:
        match = self.get_match(match_id)
        with self._lock(match):
            result = self._get_result(match, result_id)
            if result.status != ResultStatus.PENDING:
                raise InvalidStateError(f"Only PENDING results can be rejected; {result_id} is {result.status.value}")
            result.status = ResultStatus.REJECTED
            self.store.commit()
        return result

    def reverse_result(self, match_id: str, reversed_by: str = 'SYSTEM_ARBITRATION') -> MatchResult:
        """Replace the validated result with one whose scores are swapped."""
        match = self.get_match(match_id)
        with self._lock(match):
            if match.status not in (MatchStatus.COMPLETED, MatchStatus.DISPUTED):
                raise InvalidStateError(f"Match {match.match_code} is {match.status.value}; nothing to reverse")
            current = self.get_validated_result(match.id)
            if current is None:
                raise InvalidStateError(f"Match {match.match_code} has no validated result to reverse")
            reversed_result = MatchResult(match.id, reversed_by, current.player2_score, current.player1_score)
            promoted = self._apply_validated(match, reversed_result, reversed_by)
            self.store.add('results', reversed_result)
            self.store.commit()
        logger.info(f'Reversed result of match {match.match_code}: '
                    f'{reversed_result.player1_score}-{reversed_result.player2_score}')
        self._announce(promoted)
        return reversed_result

    def _apply_validated(self, match: Match, result: MatchResult, validated_by: str) -> List[Match]:
        """
        Make result the validated one and move the match's winner accordingly.
        Nothing is mutated if downstream matches forbid the change.
        """
        winning_slot = result.winning_slot
        winner_id = match.slots[winning_slot].participant_id if winning_slot is not None else None
        matches_by_id = self._matches_by_id(match.tournament_id)
        match = matches_by_id[match.id]
        winner_changed = match.status != MatchStatus.LIVE and match.winner_id != winner_id
        if winner_changed and match.winner_id is not None:
            check_withdrawable(matches_by_id, match)

        previous = self.get_validated_result(match.id)
        if previous is not None and previous.id != result.id:
            previous.status = ResultStatus.DISPUTED
        result.status = ResultStatus.VALIDATED
        result.validated_by = validated_by
        result.validated_at = datetime.now()

        now = datetime.now()
        touched = []
        if match.status == MatchStatus.LIVE:
            self._transition(match, MatchStatus.COMPLETED)
            match.completed_at = now
            match.winner_id = winner_id
            if winner_id is not None:
                touched = advance(matches_by_id, match, now)
        elif winner_changed:
            if match.winner_id is not None:
                touched.extend(withdraw(matches_by_id, match))
            match.winner_id = winner_id
            match.completed_at = match.completed_at or now
            if winner_id is not None:
                touched.extend(advance(matches_by_id, match, now))

        tournament = self.store.get('tournaments', match.tournament_id)
        return self._promote(tournament, touched)

    # ===== disputes, cancellation, rematch =====

    def mark_disputed(self, match_id: str) -> Match:
        match = self.get_match(match_id)
        with self._lock(match):
            previous = match.status
            self._transition(match, MatchStatus.DISPUTED)
            match.status_before_dispute = previous
            self.store.commit()
        return match

    def restore_after_dispute(self, match_id: str) -> Match:
        """DISPUTED -> COMPLETED if a validated result stands, else back to the prior state."""
        match = self.get_match(match_id)
        with self._lock(match):
            if match.status != MatchStatus.DISPUTED:
                raise InvalidStateError(f"Match {match.match_code} is {match.status.value}, not DISPUTED")
            if self.get_validated_result(match.id) is not None:
                target = MatchStatus.COMPLETED
            else:
                target = match.status_before_dispute or MatchStatus.LIVE
            self._transition(match, target)
            match.status_before_dispute = None
            self.store.commit()
        return match

    def cancel_match(self, match_id: str) -> Match:
        """Cancel without a winner; fed slots are voided, downstream walkovers settle."""
        match = self.get_match(match_id)
        with self._lock(match):
            matches_by_id = self._matches_by_id(match.tournament_id)
            match = matches_by_id[match.id]
            if not self.can_transition(match.status, MatchStatus.CANCELLED):
                raise InvalidStateError(f"Match {match.match_code} is {match.status.value} and cannot be cancelled")
            if match.winner_id is not None:
                withdraw(matches_by_id, match)
            validated = self.get_validated_result(match.id)
            if validated is not None:
                validated.status = ResultStatus.DISPUTED

            self._transition(match, MatchStatus.CANCELLED)
            match.winner_id = None
            match.status_before_dispute = None
            touched = void_feeds(matches_by_id, match, datetime.now())
            tournament = self.store.get('tournaments', match.tournament_id)
            promoted = self._promote(tournament, touched)
            self.store.commit()
        self._announce(promoted)
        return match

    def schedule_rematch(self, match_id: str) -> Match:
        """COMPLETED/DISPUTED -> PENDING, withdrawing whoever this match advanced."""
        match = self.get_match(match_id)
        with self._lock(match):
            matches_by_id = self._matches_by_id(match.tournament_id)
            match = matches_by_id[match.id]
            if match.is_bye:
                raise InvalidStateError(f"Bye match {match.match_code} cannot be replayed")
            if not self.can_transition(match.status, MatchStatus.PENDING):
                raise InvalidStateError(f"Match {match.match_code} is {match.status.value}; cannot schedule a rematch")
            if match.winner_id is not None:
                withdraw(matches_by_id, match)
            validated = self.get_validated_result(match.id)
            if validated is not None:
                validated.status = ResultStatus.DISPUTED

            self._transition(match, MatchStatus.PENDING)
            match.started_at = None
            match.completed_at = None
            match.winner_id = None
            match.status_before_dispute = None
            self.store.commit()
        return match
