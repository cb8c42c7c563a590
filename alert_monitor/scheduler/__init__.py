from .endpoint_checker import EndpointChecker, TickOutcome
from .job_scheduler import SchedulerHandle, SchedulerManager
from .locks import TagLocks
from .mute_controls import DEFAULT_MUTE_MINUTES, MuteControls

__all__ = [
    "DEFAULT_MUTE_MINUTES",
    "EndpointChecker",
    "MuteControls",
    "SchedulerHandle",
    "SchedulerManager",
    "TagLocks",
    "TickOutcome",
]
