"""
Consensus calculation over cast arbitration votes.
"""
import math
from typing import Dict, List, Optional, Sequence

from .models import ArbitrationDecision, ArbitrationVote

DECISION_ORDER = list(ArbitrationDecision)
MAX_KEY_POINTS = 3


class ConsensusOutcome:
    def __init__(self, decision: ArbitrationDecision, consensus: bool, percentage: float,
                 average_confidence: float, reasoning: str, tally: Dict[str, Dict]):
        self.decision = decision
        self.consensus = consensus
        self.percentage = percentage
        self.average_confidence = average_confidence
        self.reasoning = reasoning
        self.tally = tally

    def __repr__(self):
        return f"ConsensusOutcome(decision={self.decision.value}, consensus={self.consensus}, percentage={self.percentage:.3f})"


def tally_votes(votes: Sequence[ArbitrationVote]) -> Dict[ArbitrationDecision, Dict]:
    """Group cast votes by decision: count, percentage, average confidence, voters."""
    total = len(votes)
    grouped: Dict[ArbitrationDecision, List[ArbitrationVote]] = {}
    for vote in votes:
        grouped.setdefault(vote.decision, []).append(vote)

    tally = {}
    for decision, group in grouped.items():
        tally[decision] = {
            'count': len(group),
            'percentage': len(group) / total,
            'average_confidence': math.fsum(v.confidence for v in group) / len(group),
            'voters': sorted(group, key=lambda v: v.arbiter_id),
        }
    return tally


def calculate_consensus(votes: Sequence[ArbitrationVote], threshold: float = 0.6) -> Optional[ConsensusOutcome]:
    """
    Pick the winning decision and whether it clears the threshold.

    The winner has the most votes, then the highest average confidence,
    then the earliest decision in enum order, so the outcome does not depend
    on the order votes arrive in. Returns None when there are no votes.
    """
    if not votes:
        return None
    tally = tally_votes(votes)
    decision = min(
        tally,
        key=lambda d: (-tally[d]['count'], -tally[d]['average_confidence'], DECISION_ORDER.index(d)),
    )
    winning = tally[decision]

    points = [v.reasoning.strip() for v in winning['voters'] if v.reasoning and v.reasoning.strip()]
    reasoning = f"Arbiters reached {winning['percentage'] * 100:.1f}% consensus for {decision.value}."
    if points:
        reasoning += f" Key points: {'; '.join(points[:MAX_KEY_POINTS])}."

    return ConsensusOutcome(
        decision=decision,
        consensus=winning['percentage'] >= threshold,
        percentage=winning['percentage'],
        average_confidence=winning['average_confidence'],
        reasoning=reasoning,
        tally={
            d.value: {k: v for k, v in entry.items() if k != 'voters'}
            for d, entry in tally.items()
        },
    )
