"""
Notification sink for engine events (MatchReady, DisputeAssigned,
DisputeResolved).

Delivery is fire-and-forget: emit() never lets a sink failure escape into
the operation that produced the event.
"""
import logging

logger = logging.getLogger(__name__)


class NotificationSink:
    def match_ready(self, match_id: str):
        pass

    def dispute_assigned(self, dispute_id: str, arbiter_id: str):
        pass

    def dispute_resolved(self, dispute_id: str, decision: str):
        pass


class LoggingNotifier(NotificationSink):
    def match_ready(self, match_id: str):
        logger.info(f'MatchReady match={match_id}')

    def dispute_assigned(self, dispute_id: str, arbiter_id: str):
        logger.info(f'DisputeAssigned dispute={dispute_id} arbiter={arbiter_id}')

    def dispute_resolved(self, dispute_id: str, decision: str):
        logger.info(f'DisputeResolved dispute={dispute_id} decision={decision}')


def emit(sink: NotificationSink, event: str, *args):
    """Call sink.<event>(*args), logging instead of raising on failure."""
    try:
        getattr(sink, event)(*args)
    except Exception:
        logger.exception(f'Notification {event}{args} failed')
