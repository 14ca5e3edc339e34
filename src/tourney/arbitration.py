"""
Decentralized arbitration: dispute intake, panel assignment, voting and
consensus.

Locks are always taken dispute:<id> first, then bracket:<tournament_id>
(inside MatchLifecycle), never the other way round.

DisputeResolved is emitted only for RESOLVED disputes; an escalation,
whether voted or for lack of consensus, is not a resolution.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .arbiters import select_panel
from .config import get_default_policy
from .consensus import calculate_consensus
from .errors import InvalidArgumentError, InvalidStateError, NotFoundError
from .matches import MatchLifecycle, check_confidence
from .models import (
    ArbitrationDecision, ArbitrationVote, Dispute, DisputeStatus, MatchStatus,
)
from .notifications import LoggingNotifier, NotificationSink, emit
from .providers import IdentityProvider
from .resolution import ResolutionApplier
from .triage import analyze_dispute

logger = logging.getLogger(__name__)

NO_CONSENSUS = "Escalated: No consensus reached among arbiters"

ACTIVE_STATUSES = (DisputeStatus.OPEN, DisputeStatus.UNDER_REVIEW)

# Match statuses frozen while a dispute is reviewed
FREEZABLE = (MatchStatus.LIVE, MatchStatus.COMPLETED)


class ArbitrationService:
    def __init__(self, store, identity: IdentityProvider, policy: Optional[Dict] = None,
                 notifier: Optional[NotificationSink] = None,
                 lifecycle: Optional[MatchLifecycle] = None,
                 advisor: Optional[Callable] = None):
        self.store = store
        self.identity = identity
        self.policy = policy or get_default_policy()
        self.notifier = notifier or LoggingNotifier()
        self.lifecycle = lifecycle or MatchLifecycle(store, self.policy, self.notifier)
        self.applier = ResolutionApplier(store, self.lifecycle)
        self.advisor = advisor

    # ===== lookups =====

    def get_dispute(self, dispute_id: str) -> Dispute:
        return self.store.get('disputes', dispute_id)

    def get_votes(self, dispute_id: str) -> List[ArbitrationVote]:
        return self.store.find('votes', dispute_id=dispute_id)

    def get_active_disputes(self, tournament_id: Optional[str] = None) -> List[Dispute]:
        """OPEN and UNDER_REVIEW disputes, highest priority first, then oldest first."""
        disputes = self.store.find('disputes', lambda d: d.status in ACTIVE_STATUSES)
        if tournament_id is not None:
            disputes = [d for d in disputes if d.tournament_id == tournament_id]
        return sorted(disputes, key=lambda d: (-d.priority.rank, d.created_at))

    # ===== intake =====

    def _conflicted_ids(self, reporter_id: str, match) -> List[str]:
        exclude = [reporter_id]
        if match is None:
            return exclude
        for participant_id in match.participant_ids():
            participant = self.store.get('participants', participant_id)
            exclude.extend(i for i in (participant.user_id, participant.team_id) if i)
        return exclude

    def _check_no_active_dispute(self, match):
        for other in self.store.find('disputes', match_id=match.id):
            if other.status in ACTIVE_STATUSES:
                raise InvalidStateError(f"Match {match.match_code} already has active dispute {other.id}")

    def submit_dispute(self, tournament_id: str, match_id: Optional[str], reporter_id: str,
                       category, description: str, evidence: Optional[List] = None) -> Dispute:
        """
        File a dispute, triage it and assign an arbiter panel.

        A LIVE or COMPLETED match moves to DISPUTED; a match that has not
        been played keeps its status. The dispute goes to UNDER_REVIEW and
        every assigned arbiter is notified. A match carries at most one
        active dispute.
        """
        self.store.get('tournaments', tournament_id)
        match = None
        if match_id is not None:
            match = self.store.get('matches', match_id)
            if match.tournament_id != tournament_id:
                raise InvalidArgumentError(f"Match {match_id} does not belong to tournament {tournament_id}")

        analysis = analyze_dispute(category, description, evidence, self.policy, self.advisor)
        panel = select_panel(
            self.identity.list_users(), analysis.priority, self.policy,
            exclude_ids=self._conflicted_ids(reporter_id, match),
        )

        dispute = Dispute(
            tournament_id, reporter_id, analysis.category, description,
            match_id=match_id, evidence=evidence, priority=analysis.priority,
            analysis=analysis.to_dict(),
        )
        with self.store.lock('dispute', dispute.id):
            with self.store.lock('bracket', tournament_id):
                if match is not None:
                    self._check_no_active_dispute(match)
                    if match.status in FREEZABLE:
                        self.lifecycle.mark_disputed(match.id)
                self.store.add('disputes', dispute)
            for arbiter in panel:
                self.store.add('votes', ArbitrationVote(dispute.id, arbiter.id))
            dispute.status = DisputeStatus.UNDER_REVIEW
            self.store.commit()

        logger.info(f'Dispute {dispute.id} ({dispute.category.value}, {dispute.priority.value}) '
                    f'assigned to {len(panel)} arbiters')
        for arbiter in panel:
            emit(self.notifier, 'dispute_assigned', dispute.id, arbiter.id)
        return dispute

    # ===== voting =====

    def submit_vote(self, dispute_id: str, arbiter_id: str, decision, confidence: float,
                    reasoning: Optional[str] = None) -> ArbitrationVote:
        """Cast (or change) an arbiter's vote, then check for consensus."""
        confidence = check_confidence(confidence)
        try:
            decision = ArbitrationDecision(decision)
        except ValueError:
            raise InvalidArgumentError(f"Unknown arbitration decision: {decision!r}")

        with self.store.lock('dispute', dispute_id):
            dispute = self.get_dispute(dispute_id)
            if dispute.is_terminal:
                raise InvalidStateError(f"Dispute {dispute_id} is already {dispute.status.value}")
            vote = self.store.maybe_get('votes', f"{dispute_id}:{arbiter_id}")
            if vote is None:
                raise NotFoundError(f"Arbiter {arbiter_id} is not assigned to dispute {dispute_id}")
            vote.cast(decision, confidence, reasoning)
            self.store.commit()
            resolved = self._check_consensus(dispute)

        if resolved is not None and resolved.status == DisputeStatus.RESOLVED:
            emit(self.notifier, 'dispute_resolved', resolved.id, resolved.decision.value)
        return vote

    def check_consensus(self, dispute_id: str) -> Optional[Dispute]:
        """
        Decide the dispute once every assigned arbiter has voted.

        Returns None while votes are outstanding, otherwise the (now
        terminal) dispute. Calling it again on a terminal dispute changes
        nothing.
        """
        with self.store.lock('dispute', dispute_id):
            dispute = self.get_dispute(dispute_id)
            if dispute.is_terminal:
                return dispute
            resolved = self._check_consensus(dispute)
        if resolved is not None and resolved.status == DisputeStatus.RESOLVED:
            emit(self.notifier, 'dispute_resolved', resolved.id, resolved.decision.value)
        return resolved

    def _check_consensus(self, dispute: Dispute) -> Optional[Dispute]:
        if dispute.is_terminal:
            return None
        votes = self.get_votes(dispute.id)
        if not votes or any(not v.has_voted for v in votes):
            return None

        outcome = calculate_consensus(votes, self.policy['consensus_threshold'])
        if outcome.consensus:
            # Apply before marking RESOLVED; a failure leaves the dispute under review
            applied = self.applier.apply(dispute, outcome.decision)
            dispute.decision = outcome.decision
            dispute.consensus_level = outcome.percentage
            if dispute.status != DisputeStatus.ESCALATED:
                dispute.status = DisputeStatus.RESOLVED
                dispute.resolved_at = datetime.now()
                dispute.resolution = outcome.reasoning
            logger.info(f'Dispute {dispute.id} {dispute.status.value}: {applied}')
        else:
            if dispute.match_id is not None:
                match = self.store.get('matches', dispute.match_id)
                if match.status == MatchStatus.DISPUTED:
                    self.lifecycle.restore_after_dispute(match.id)
            dispute.status = DisputeStatus.ESCALATED
            dispute.resolution = NO_CONSENSUS
            dispute.consensus_level = outcome.percentage
            logger.info(f'Dispute {dispute.id} escalated: best decision {outcome.decision.value} '
                        f'at {outcome.percentage * 100:.1f}%')
        self.store.commit()
        return dispute
