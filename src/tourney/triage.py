"""
Dispute triage: advisory priority, suggested resolution, evidence checklist
and time estimate for a new dispute.

The analysis is metadata attached to the dispute. It sizes the arbiter
panel but never decides the outcome.
"""
import logging
from typing import Callable, Dict, List, Optional

from .config import get_default_policy
from .errors import InvalidArgumentError
from .models import ArbitrationDecision, DisputeCategory, DisputePriority

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 0.7

CATEGORY_TABLE = {
    DisputeCategory.WRONG_RESULT: {
        'priority': DisputePriority.HIGH,
        'suggested_resolution': ArbitrationDecision.APPROVE_DISPUTE,
        'reasoning': [
            'Score disputes require careful evidence review',
            'Screenshots and match codes are critical',
            'Player testimony should be considered',
        ],
        'required_evidence': [
            'Match result screenshot',
            'Game completion confirmation',
            'Optional: Video recording',
        ],
        'estimated_hours': 1,
    },
    DisputeCategory.NO_SHOW: {
        'priority': DisputePriority.MEDIUM,
        'suggested_resolution': ArbitrationDecision.APPROVE_ORIGINAL,
        'reasoning': [
            'No-show cases are usually straightforward',
            'Check connection logs and communication history',
            'Consider grace period policies',
        ],
        'required_evidence': [
            'Connection attempt logs',
            'Communication records',
            'Tournament rules verification',
        ],
        'estimated_hours': 0.5,
    },
    DisputeCategory.CHEATING: {
        'priority': DisputePriority.URGENT,
        'suggested_resolution': ArbitrationDecision.ESCALATE,
        'reasoning': [
            'Cheating allegations require thorough investigation',
            'Video evidence is essential',
            'Multiple arbiter review recommended',
        ],
        'required_evidence': [
            'Video proof of alleged cheating',
            'Game replay files if available',
            'Witness statements',
            'Technical analysis',
        ],
        'estimated_hours': 6,
    },
    DisputeCategory.TECHNICAL_ISSUE: {
        'priority': DisputePriority.MEDIUM,
        'suggested_resolution': ArbitrationDecision.REMATCH,
        'reasoning': [
            'Technical issues often warrant rematch',
            'Verify if issue affected game outcome',
            'Check if issue was reported promptly',
        ],
        'required_evidence': [
            'Error screenshots/logs',
            'Connection quality data',
            'Timing of issue report',
        ],
        'estimated_hours': 1,
    },
    DisputeCategory.RULE_VIOLATION: {
        'priority': DisputePriority.HIGH,
        'suggested_resolution': ArbitrationDecision.APPROVE_DISPUTE,
        'reasoning': [
            'Rule violations must be enforced consistently',
            'Review tournament rules and precedents',
            'Consider severity of violation',
        ],
        'required_evidence': [
            'Proof of rule violation',
            'Tournament rules reference',
            'Previous similar cases',
        ],
        'estimated_hours': 2,
    },
    DisputeCategory.OTHER: {
        'priority': DisputePriority.MEDIUM,
        'suggested_resolution': ArbitrationDecision.ESCALATE,
        'reasoning': ['General dispute requiring manual review'],
        'required_evidence': ['Relevant documentation'],
        'estimated_hours': 2,
    },
}


class DisputeAnalysis:
    def __init__(self, category, priority, suggested_resolution, reasoning: List[str],
                 required_evidence: List[str], estimated_hours: float, confidence: float = BASE_CONFIDENCE):
        self.category = DisputeCategory(category)
        self.priority = DisputePriority(priority)
        self.suggested_resolution = ArbitrationDecision(suggested_resolution)
        self.reasoning = list(reasoning)
        self.required_evidence = list(required_evidence)
        self.estimated_hours = estimated_hours
        self.confidence = confidence

    def to_dict(self) -> Dict:
        return {
            'category': self.category.value,
            'priority': self.priority.value,
            'suggested_resolution': self.suggested_resolution.value,
            'reasoning': list(self.reasoning),
            'required_evidence': list(self.required_evidence),
            'estimated_hours': self.estimated_hours,
            'confidence': self.confidence,
        }

    def __repr__(self):
        return f"DisputeAnalysis(priority={self.priority.value}, suggested={self.suggested_resolution.value})"


def _contains_any(text: str, keywords: List[str]) -> bool:
    lowered = text.lower()
    return any(keyword.lower() in lowered for keyword in keywords)


def _apply_keywords(analysis: DisputeAnalysis, description: str, policy: Dict):
    if _contains_any(description, policy['urgent_keywords']):
        analysis.priority = DisputePriority.URGENT
        analysis.estimated_hours *= 2
    elif _contains_any(description, policy['high_keywords']):
        if analysis.priority.rank < DisputePriority.HIGH.rank:
            analysis.priority = DisputePriority.HIGH


def _apply_advice(analysis: DisputeAnalysis, advice: Optional[Dict]):
    if not advice:
        return
    if 'priority' in advice:
        analysis.priority = DisputePriority(advice['priority'])
    if 'suggested_resolution' in advice:
        analysis.suggested_resolution = ArbitrationDecision(advice['suggested_resolution'])
    if 'reasoning' in advice:
        analysis.reasoning = list(advice['reasoning'])
    if 'required_evidence' in advice:
        analysis.required_evidence = list(advice['required_evidence'])
    if 'estimated_hours' in advice:
        analysis.estimated_hours = float(advice['estimated_hours'])
    if 'confidence' in advice:
        analysis.confidence = float(advice['confidence'])


def analyze_dispute(category, description: str, evidence: Optional[List] = None,
                    policy: Optional[Dict] = None,
                    advisor: Optional[Callable] = None) -> DisputeAnalysis:
    """
    Triage a dispute from its category table entry, then the description.

    Urgent keywords force URGENT and double the estimate; high keywords lift
    the priority to at least HIGH. Keyword matching and the optional
    advisor(category, description, evidence) are best-effort: a failure is
    logged and the category default stands.
    """
    policy = policy or get_default_policy()
    try:
        category = DisputeCategory(category)
    except ValueError:
        raise InvalidArgumentError(f"Unknown dispute category: {category!r}")
    entry = CATEGORY_TABLE[category]
    analysis = DisputeAnalysis(
        category,
        entry['priority'],
        entry['suggested_resolution'],
        entry['reasoning'],
        entry['required_evidence'],
        entry['estimated_hours'],
    )

    try:
        _apply_keywords(analysis, description, policy)
    except (AttributeError, TypeError) as e:
        logger.warning(f'Keyword triage failed for {category.value} dispute, keeping category default: {e}')

    if advisor is not None:
        try:
            _apply_advice(analysis, advisor(category, description, evidence or []))
        except Exception as e:
            logger.warning(f'Dispute advisor failed for {category.value} dispute, ignoring its advice: {e}')

    return analysis
