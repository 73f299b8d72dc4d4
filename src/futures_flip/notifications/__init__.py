from futures_flip.notifications.events import EventLog
from futures_flip.notifications.webhook import BestEffortPoster

__all__ = ["BestEffortPoster", "EventLog"]
