"""
Data model for tournaments, brackets, matches and arbitration.

Records are plain classes; to_dict()/from_dict() give the YAML-safe shape
used by the store snapshot.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple


class TournamentFormat(str, Enum):
    SINGLE_ELIMINATION = "SINGLE_ELIMINATION"
    DOUBLE_ELIMINATION = "DOUBLE_ELIMINATION"
    ROUND_ROBIN = "ROUND_ROBIN"
    SWISS = "SWISS"
    LEAGUE = "LEAGUE"
    CUSTOM = "CUSTOM"


class TournamentStatus(str, Enum):
    """Tournament lifecycle states."""

    DRAFT = "DRAFT"
    REGISTRATION_OPEN = "REGISTRATION_OPEN"
    REGISTRATION_CLOSED = "REGISTRATION_CLOSED"
    CHECK_IN = "CHECK_IN"
    LIVE = "LIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


PRE_LIVE_STATUSES = (
    TournamentStatus.DRAFT,
    TournamentStatus.REGISTRATION_OPEN,
    TournamentStatus.REGISTRATION_CLOSED,
    TournamentStatus.CHECK_IN,
)


class MatchStatus(str, Enum):
    PENDING = "PENDING"
    READY = "READY"
    LIVE = "LIVE"
    COMPLETED = "COMPLETED"
    DISPUTED = "DISPUTED"
    CANCELLED = "CANCELLED"


class ResultStatus(str, Enum):
    PENDING = "PENDING"
    VALIDATED = "VALIDATED"
    DISPUTED = "DISPUTED"
    REJECTED = "REJECTED"


class ParticipantStatus(str, Enum):
    REGISTERED = "REGISTERED"
    CHECKED_IN = "CHECKED_IN"
    DISQUALIFIED = "DISQUALIFIED"


class DisputeCategory(str, Enum):
    WRONG_RESULT = "WRONG_RESULT"
    NO_SHOW = "NO_SHOW"
    CHEATING = "CHEATING"
    TECHNICAL_ISSUE = "TECHNICAL_ISSUE"
    RULE_VIOLATION = "RULE_VIOLATION"
    OTHER = "OTHER"


class DisputePriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @property
    def rank(self) -> int:
        return PRIORITY_ORDER.index(self)


PRIORITY_ORDER = [DisputePriority.LOW, DisputePriority.MEDIUM, DisputePriority.HIGH, DisputePriority.URGENT]


class DisputeStatus(str, Enum):
    OPEN = "OPEN"
    UNDER_REVIEW = "UNDER_REVIEW"
    RESOLVED = "RESOLVED"
    ESCALATED = "ESCALATED"


class ArbitrationDecision(str, Enum):
    APPROVE_ORIGINAL = "APPROVE_ORIGINAL"
    APPROVE_DISPUTE = "APPROVE_DISPUTE"
    REMATCH = "REMATCH"
    DISQUALIFY_BOTH = "DISQUALIFY_BOTH"
    ESCALATE = "ESCALATE"


class VoteState(str, Enum):
    """Whether an assigned arbiter has cast a vote yet."""

    PENDING = "PENDING"
    CAST = "CAST"


class Role(str, Enum):
    PLAYER = "PLAYER"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"


class SeedingMethod(str, Enum):
    ELO = "elo"
    RANDOM = "random"
    MANUAL = "manual"


def new_id() -> str:
    return str(uuid.uuid4())


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _feed(value) -> Optional[Tuple[str, int]]:
    return (value[0], int(value[1])) if value else None


class Tournament:
    def __init__(self, name, format, min_participants=2, max_participants=16,
                 status=TournamentStatus.DRAFT, organizer_id=None, is_team_tournament=False,
                 requires_check_in=False, id=None, current_participants=0,
                 brackets_generated=False, created_at=None):
        self.id = id or new_id()
        self.name = name
        self.format = TournamentFormat(format)
        self.min_participants = min_participants
        self.max_participants = max_participants
        self.status = TournamentStatus(status)
        self.organizer_id = organizer_id
        self.is_team_tournament = is_team_tournament
        self.requires_check_in = requires_check_in
        self.current_participants = current_participants
        self.brackets_generated = brackets_generated
        self.created_at = created_at or datetime.now()

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'format': self.format.value,
            'min_participants': self.min_participants,
            'max_participants': self.max_participants,
            'status': self.status.value,
            'organizer_id': self.organizer_id,
            'is_team_tournament': self.is_team_tournament,
            'requires_check_in': self.requires_check_in,
            'current_participants': self.current_participants,
            'brackets_generated': self.brackets_generated,
            'created_at': _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Tournament':
        data = dict(data)
        data['created_at'] = _parse(data.get('created_at'))
        return cls(**data)

    def __repr__(self):
        return f"Tournament(name={self.name}, format={self.format.value}, status={self.status.value})"


class Participant:
    """A user or team entry, with the rating snapshot taken at registration."""

    def __init__(self, tournament_id, user_id=None, team_id=None, rating=1200.0,
                 registration_order=0, status=ParticipantStatus.REGISTERED, seed=None,
                 rating_locked=False, id=None, registered_at=None, checked_in_at=None):
        self.id = id or new_id()
        self.tournament_id = tournament_id
        self.user_id = user_id
        self.team_id = team_id
        self.rating = rating
        self.registration_order = registration_order
        self.status = ParticipantStatus(status)
        self.seed = seed
        self.rating_locked = rating_locked
        self.registered_at = registered_at or datetime.now()
        self.checked_in_at = checked_in_at

    @property
    def entrant_id(self) -> str:
        return self.team_id or self.user_id

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'user_id': self.user_id,
            'team_id': self.team_id,
            'rating': self.rating,
            'registration_order': self.registration_order,
            'status': self.status.value,
            'seed': self.seed,
            'rating_locked': self.rating_locked,
            'registered_at': _iso(self.registered_at),
            'checked_in_at': _iso(self.checked_in_at),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Participant':
        data = dict(data)
        data['registered_at'] = _parse(data.get('registered_at'))
        data['checked_in_at'] = _parse(data.get('checked_in_at'))
        return cls(**data)

    def __repr__(self):
        return f"Participant(entrant={self.entrant_id}, rating={self.rating}, seed={self.seed})"


class Bracket:
    def __init__(self, tournament_id, name, kind, round=1, position=0, total_rounds=None, id=None):
        self.id = id or new_id()
        self.tournament_id = tournament_id
        self.name = name
        self.kind = kind
        self.round = round
        self.position = position
        self.total_rounds = total_rounds

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'name': self.name,
            'kind': self.kind,
            'round': self.round,
            'position': self.position,
            'total_rounds': self.total_rounds,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Bracket':
        return cls(**data)

    def __repr__(self):
        return f"Bracket(name={self.name}, kind={self.kind})"


class MatchSlot:
    """One side of a match. A void slot will never be filled."""

    def __init__(self, slot, participant_id=None, void=False):
        self.slot = slot
        self.participant_id = participant_id
        self.void = void

    @property
    def is_filled(self) -> bool:
        return self.participant_id is not None

    def to_dict(self) -> Dict:
        return {'slot': self.slot, 'participant_id': self.participant_id, 'void': self.void}

    @classmethod
    def from_dict(cls, data: Dict) -> 'MatchSlot':
        return cls(**data)

    def __repr__(self):
        return f"MatchSlot(slot={self.slot}, participant_id={self.participant_id})"


class Match:
    def __init__(self, tournament_id, bracket_id, round, position, slots=None,
                 status=MatchStatus.PENDING, match_code=None, round_name=None, is_bye=False,
                 is_conditional=False, winner_to=None, loser_to=None, winner_id=None,
                 started_at=None, completed_at=None, status_before_dispute=None, id=None):
        self.id = id or new_id()
        self.tournament_id = tournament_id
        self.bracket_id = bracket_id
        self.round = round
        self.position = position
        self.slots: List[MatchSlot] = slots if slots is not None else [MatchSlot(0), MatchSlot(1)]
        self.status = MatchStatus(status)
        self.match_code = match_code or f"R{round}-M{position + 1}"
        self.round_name = round_name
        self.is_bye = is_bye
        self.is_conditional = is_conditional
        # (match_id, slot index) the winner / loser moves into
        self.winner_to = _feed(winner_to)
        self.loser_to = _feed(loser_to)
        self.winner_id = winner_id
        self.started_at = started_at
        self.completed_at = completed_at
        self.status_before_dispute = MatchStatus(status_before_dispute) if status_before_dispute else None

    def participant_ids(self) -> List[str]:
        return [s.participant_id for s in self.slots if s.is_filled]

    def slot_of(self, participant_id: str) -> Optional[MatchSlot]:
        for s in self.slots:
            if s.participant_id == participant_id:
                return s
        return None

    @property
    def is_full(self) -> bool:
        return all(s.is_filled for s in self.slots)

    @property
    def feeds_forward(self) -> bool:
        return self.winner_to is not None or self.loser_to is not None

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'bracket_id': self.bracket_id,
            'round': self.round,
            'position': self.position,
            'slots': [s.to_dict() for s in self.slots],
            'status': self.status.value,
            'match_code': self.match_code,
            'round_name': self.round_name,
            'is_bye': self.is_bye,
            'is_conditional': self.is_conditional,
            'winner_to': list(self.winner_to) if self.winner_to else None,
            'loser_to': list(self.loser_to) if self.loser_to else None,
            'winner_id': self.winner_id,
            'started_at': _iso(self.started_at),
            'completed_at': _iso(self.completed_at),
            'status_before_dispute': self.status_before_dispute.value if self.status_before_dispute else None,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Match':
        data = dict(data)
        data['slots'] = [MatchSlot.from_dict(s) for s in data.get('slots', [])]
        data['started_at'] = _parse(data.get('started_at'))
        data['completed_at'] = _parse(data.get('completed_at'))
        return cls(**data)

    def __repr__(self):
        return f"Match(code={self.match_code}, status={self.status.value}, slots={self.participant_ids()})"


class MatchResult:
    """Append-only score record for a match."""

    def __init__(self, match_id, submitted_by, player1_score, player2_score,
                 status=ResultStatus.PENDING, confidence=None, validated_by=None,
                 validated_at=None, submitted_at=None, id=None):
        self.id = id or new_id()
        self.match_id = match_id
        self.submitted_by = submitted_by
        self.player1_score = player1_score
        self.player2_score = player2_score
        self.status = ResultStatus(status)
        self.confidence = confidence
        self.validated_by = validated_by
        self.validated_at = validated_at
        self.submitted_at = submitted_at or datetime.now()

    @property
    def winning_slot(self) -> Optional[int]:
        if self.player1_score > self.player2_score:
            return 0
        if self.player2_score > self.player1_score:
            return 1
        return None

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'match_id': self.match_id,
            'submitted_by': self.submitted_by,
            'player1_score': self.player1_score,
            'player2_score': self.player2_score,
            'status': self.status.value,
            'confidence': self.confidence,
            'validated_by': self.validated_by,
            'validated_at': _iso(self.validated_at),
            'submitted_at': _iso(self.submitted_at),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'MatchResult':
        data = dict(data)
        data['validated_at'] = _parse(data.get('validated_at'))
        data['submitted_at'] = _parse(data.get('submitted_at'))
        return cls(**data)

    def __repr__(self):
        return f"MatchResult({self.player1_score}-{self.player2_score}, status={self.status.value})"


class Dispute:
    def __init__(self, tournament_id, reported_by, category, description, match_id=None,
                 evidence=None, status=DisputeStatus.OPEN, priority=DisputePriority.MEDIUM,
                 analysis=None, decision=None, resolution=None, consensus_level=None,
                 created_at=None, resolved_at=None, id=None):
        self.id = id or new_id()
        self.tournament_id = tournament_id
        self.match_id = match_id
        self.reported_by = reported_by
        self.category = DisputeCategory(category)
        self.description = description
        self.evidence = list(evidence) if evidence else []
        self.status = DisputeStatus(status)
        self.priority = DisputePriority(priority)
        self.analysis = analysis or {}
        self.decision = ArbitrationDecision(decision) if decision else None
        self.resolution = resolution
        self.consensus_level = consensus_level
        self.created_at = created_at or datetime.now()
        self.resolved_at = resolved_at

    @property
    def is_terminal(self) -> bool:
        return self.status in (DisputeStatus.RESOLVED, DisputeStatus.ESCALATED)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'match_id': self.match_id,
            'reported_by': self.reported_by,
            'category': self.category.value,
            'description': self.description,
            'evidence': list(self.evidence),
            'status': self.status.value,
            'priority': self.priority.value,
            'analysis': self.analysis,
            'decision': self.decision.value if self.decision else None,
            'resolution': self.resolution,
            'consensus_level': self.consensus_level,
            'created_at': _iso(self.created_at),
            'resolved_at': _iso(self.resolved_at),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Dispute':
        data = dict(data)
        data['created_at'] = _parse(data.get('created_at'))
        data['resolved_at'] = _parse(data.get('resolved_at'))
        return cls(**data)

    def __repr__(self):
        return f"Dispute(category={self.category.value}, priority={self.priority.value}, status={self.status.value})"


class ArbitrationVote:
    """One row per (dispute, arbiter); PENDING until the arbiter casts it."""

    def __init__(self, dispute_id, arbiter_id, state=VoteState.PENDING, decision=None,
                 confidence=None, reasoning=None, assigned_at=None, cast_at=None):
        self.dispute_id = dispute_id
        self.arbiter_id = arbiter_id
        self.state = VoteState(state)
        self.decision = ArbitrationDecision(decision) if decision else None
        self.confidence = confidence
        self.reasoning = reasoning
        self.assigned_at = assigned_at or datetime.now()
        self.cast_at = cast_at

    @property
    def id(self) -> str:
        return f"{self.dispute_id}:{self.arbiter_id}"

    @property
    def has_voted(self) -> bool:
        return self.state == VoteState.CAST

    def cast(self, decision, confidence, reasoning=None):
        self.state = VoteState.CAST
        self.decision = ArbitrationDecision(decision)
        self.confidence = confidence
        self.reasoning = reasoning
        self.cast_at = datetime.now()

    def to_dict(self) -> Dict:
        return {
            'dispute_id': self.dispute_id,
            'arbiter_id': self.arbiter_id,
            'state': self.state.value,
            'decision': self.decision.value if self.decision else None,
            'confidence': self.confidence,
            'reasoning': self.reasoning,
            'assigned_at': _iso(self.assigned_at),
            'cast_at': _iso(self.cast_at),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'ArbitrationVote':
        data = dict(data)
        data['assigned_at'] = _parse(data.get('assigned_at'))
        data['cast_at'] = _parse(data.get('cast_at'))
        return cls(**data)

    def __repr__(self):
        decision = self.decision.value if self.decision else None
        return f"ArbitrationVote(arbiter={self.arbiter_id}, state={self.state.value}, decision={decision})"


class UserRecord:
    """Identity-provider view of a user: role plus active/banned flags."""

    def __init__(self, id, username=None, role=Role.PLAYER, is_active=True, is_banned=False,
                 last_login_at=None):
        self.id = id
        self.username = username or id
        self.role = Role(role)
        self.is_active = is_active
        self.is_banned = is_banned
        self.last_login_at = last_login_at

    def __repr__(self):
        return f"UserRecord(username={self.username}, role={self.role.value})"
