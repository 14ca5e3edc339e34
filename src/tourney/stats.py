"""
Read-only statistics over tournaments and arbitration.
"""
from typing import Dict, List, Optional

from .arbiters import is_eligible
from .config import get_default_policy
from .models import DisputeCategory, DisputeStatus, MatchStatus, ResultStatus
from .providers import IdentityProvider

TOP_N = 5


def _played_matches(store, tournament_id: str) -> List:
    return store.find('matches', lambda m: not m.is_bye and m.winner_id is not None
                      and m.status == MatchStatus.COMPLETED and len(m.participant_ids()) == 2,
                      tournament_id=tournament_id)


def _top_performers(store, matches: List) -> List[Dict]:
    records: Dict[str, Dict] = {}
    for match in matches:
        for participant_id in match.participant_ids():
            record = records.setdefault(participant_id, {'wins': 0, 'losses': 0})
            if participant_id == match.winner_id:
                record['wins'] += 1
            else:
                record['losses'] += 1

    performers = []
    for participant_id, record in records.items():
        participant = store.get('participants', participant_id)
        played = record['wins'] + record['losses']
        performers.append({
            'participant_id': participant_id,
            'entrant_id': participant.entrant_id,
            'wins': record['wins'],
            'losses': record['losses'],
            'win_rate': record['wins'] / played,
        })
    performers.sort(key=lambda p: (-p['win_rate'], -p['wins']))
    return performers[:TOP_N]


def _count_upsets(store, matches: List, rating_gap: float) -> int:
    upsets = 0
    for match in matches:
        validated = store.find('results', match_id=match.id, status=ResultStatus.VALIDATED)
        if not validated:
            continue
        loser_id = next(pid for pid in match.participant_ids() if pid != match.winner_id)
        winner = store.get('participants', match.winner_id)
        loser = store.get('participants', loser_id)
        if loser.rating - winner.rating > rating_gap:
            upsets += 1
    return upsets


def tournament_stats(store, tournament_id: str, policy: Optional[Dict] = None) -> Dict:
    """
    Summary numbers for one tournament.

    Upsets are validated wins by the side rated more than upset_rating_gap
    below its opponent.
    """
    policy = policy or get_default_policy()
    store.get('tournaments', tournament_id)
    matches = store.find('matches', lambda m: not m.is_bye, tournament_id=tournament_id)
    played = _played_matches(store, tournament_id)

    durations = [
        (m.completed_at - m.started_at).total_seconds() / 60
        for m in matches
        if m.status == MatchStatus.COMPLETED and m.started_at and m.completed_at
    ]
    return {
        'participants': len(store.find('participants', tournament_id=tournament_id)),
        'total_matches': len(matches),
        'completed_matches': sum(1 for m in matches if m.status == MatchStatus.COMPLETED),
        'pending_matches': sum(1 for m in matches
                               if m.status in (MatchStatus.PENDING, MatchStatus.READY, MatchStatus.LIVE)),
        'average_match_minutes': sum(durations) / len(durations) if durations else None,
        'top_performers': _top_performers(store, played),
        'upsets': _count_upsets(store, played, policy['upset_rating_gap']),
    }


def arbitration_stats(store, tournament_id: Optional[str] = None) -> Dict:
    """Dispute totals, resolution time, consensus rate and the busiest categories."""
    disputes = store.find('disputes')
    if tournament_id is not None:
        disputes = [d for d in disputes if d.tournament_id == tournament_id]

    resolved = [d for d in disputes if d.status == DisputeStatus.RESOLVED]
    escalated = [d for d in disputes if d.status == DisputeStatus.ESCALATED]
    hours = [
        (d.resolved_at - d.created_at).total_seconds() / 3600
        for d in resolved
        if d.resolved_at
    ]
    decided = len(resolved) + len(escalated)

    counts = {}
    for dispute in disputes:
        counts[dispute.category] = counts.get(dispute.category, 0) + 1
    order = list(DisputeCategory)
    top_categories = sorted(counts.items(), key=lambda item: (-item[1], order.index(item[0])))

    return {
        'total_disputes': len(disputes),
        'resolved_disputes': len(resolved),
        'escalated_disputes': len(escalated),
        'active_disputes': sum(1 for d in disputes
                               if d.status in (DisputeStatus.OPEN, DisputeStatus.UNDER_REVIEW)),
        'average_resolution_hours': sum(hours) / len(hours) if hours else None,
        'consensus_rate': len(resolved) / decided if decided else None,
        'top_categories': [{'category': c.value, 'count': n} for c, n in top_categories[:TOP_N]],
    }


def arbitration_pool(store, identity: IdentityProvider, policy: Optional[Dict] = None) -> Dict:
    """Eligible arbiters and how many more disputes they can take."""
    policy = policy or get_default_policy()
    arbiters = [u for u in identity.list_users() if is_eligible(u, policy)]
    active = store.find('disputes', lambda d: d.status in (DisputeStatus.OPEN, DisputeStatus.UNDER_REVIEW))
    capacity = len(arbiters) * policy['arbiter_capacity']
    return {
        'arbiters': len(arbiters),
        'active_disputes': len(active),
        'available_slots': max(0, capacity - len(active)),
    }
