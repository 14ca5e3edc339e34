"""
Applies an arbitration decision to the disputed match.

A dispute may have been filed before its match was played, so the match
is not necessarily DISPUTED when the decision lands.
"""
import logging

from .errors import InvalidArgumentError, NotFoundError
from .matches import MatchLifecycle
from .models import (
    ArbitrationDecision, Dispute, DisputeCategory, DisputeStatus, MatchStatus, ParticipantStatus,
)

logger = logging.getLogger(__name__)

ARBITRATION_SUBMITTER = 'SYSTEM_ARBITRATION'
ESCALATED_BY_ARBITERS = "Escalated: Resolution escalated by arbiters"

# Statuses a rematch can replay
REPLAYABLE = (MatchStatus.COMPLETED, MatchStatus.DISPUTED)


class ResolutionApplier:
    def __init__(self, store, lifecycle: MatchLifecycle):
        self.store = store
        self.lifecycle = lifecycle

    def _match_for(self, dispute: Dispute):
        if dispute.match_id is None:
            raise NotFoundError(f"Dispute {dispute.id} has no match to apply a decision to")
        return self.store.get('matches', dispute.match_id)

    def _restore(self, match):
        if match.status == MatchStatus.DISPUTED:
            self.lifecycle.restore_after_dispute(match.id)

    def _uphold(self, dispute: Dispute, match) -> str:
        resolution = "Dispute upheld"
        if dispute.category == DisputeCategory.WRONG_RESULT:
            if self.lifecycle.get_validated_result(match.id) is not None:
                self.lifecycle.reverse_result(match.id, reversed_by=ARBITRATION_SUBMITTER)
                resolution = "Dispute upheld; match result reversed"
            else:
                resolution = "Dispute upheld; no validated result to reverse"
        self._restore(match)
        return resolution

    def _rematch(self, match) -> str:
        if match.status in REPLAYABLE:
            self.lifecycle.schedule_rematch(match.id)
            return "Rematch scheduled"
        return f"Match not completed; it stays {match.status.value}"

    def _disqualify(self, match) -> str:
        participant_ids = match.participant_ids()
        if match.status == MatchStatus.COMPLETED:
            self.lifecycle.mark_disputed(match.id)
        if match.status != MatchStatus.CANCELLED:
            self.lifecycle.cancel_match(match.id)
        with self.store.lock('tournament', match.tournament_id):
            for participant_id in participant_ids:
                self.store.get('participants', participant_id).status = ParticipantStatus.DISQUALIFIED
            self.store.commit()
        return "Both participants disqualified; match cancelled"

    def apply(self, dispute: Dispute, decision) -> str:
        """
        Carry out decision and return the resolution text for the dispute.

        ESCALATE moves the dispute to ESCALATED itself; every other decision
        leaves the dispute status to the caller.
        """
        try:
            decision = ArbitrationDecision(decision)
        except ValueError:
            raise InvalidArgumentError(f"Unknown arbitration decision: {decision!r}")

        if decision == ArbitrationDecision.ESCALATE:
            if dispute.match_id is not None:
                self._restore(self._match_for(dispute))
            dispute.status = DisputeStatus.ESCALATED
            dispute.resolution = ESCALATED_BY_ARBITERS
            logger.info(f'Dispute {dispute.id} escalated by arbiters')
            return ESCALATED_BY_ARBITERS

        match = self._match_for(dispute)

        if decision == ArbitrationDecision.APPROVE_ORIGINAL:
            self._restore(match)
            resolution = "Original result upheld"
        elif decision == ArbitrationDecision.APPROVE_DISPUTE:
            resolution = self._uphold(dispute, match)
        elif decision == ArbitrationDecision.REMATCH:
            resolution = self._rematch(match)
        else:
            resolution = self._disqualify(match)

        logger.info(f'Applied {decision.value} to match {match.match_code} for dispute {dispute.id}: {resolution}')
        return resolution
