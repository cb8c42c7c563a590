"""Per-endpoint interval scheduling on top of APScheduler."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..errors import AlertMonitorError, EndpointNotFoundError
from ..registry import EndpointConfig, EndpointRegistry, RemoveResult
from ..state import NotificationStateStore
from .endpoint_checker import EndpointChecker, TickOutcome
from .locks import TagLocks


logger = structlog.get_logger(__name__)


def _job_id(tag: str) -> str:
    return f"endpoint:{tag}"


@dataclass
class SchedulerHandle:
    tag: str
    job_id: str
    last_known_interval_ms: int
    replacements: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SchedulerManager:
    """Owns one interval job per running endpoint tag.

    Ticks for the same tag are serialized through ``locks``; ticks for
    different tags run concurrently on the event loop.
    """

    def __init__(
        self,
        checker: EndpointChecker,
        registry: EndpointRegistry,
        store: Optional[NotificationStateStore] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
        locks: Optional[TagLocks] = None,
    ):
        self.checker = checker
        self.registry = registry
        self.store = store if store is not None else checker.store
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self.locks = locks or TagLocks()
        self._handles: Dict[str, SchedulerHandle] = {}

    # --- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        if self.scheduler.running:
            logger.warning("Scheduler already running")
            return
        self.scheduler.start()
        logger.info("Endpoint scheduler started", event_type="SYSTEM")

    def shutdown(self) -> None:
        for tag in list(self._handles):
            self.stop_endpoint(tag)
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Endpoint scheduler stopped", event_type="SYSTEM")

    # --- per-tag control ---------------------------------------------------

    def start_endpoint(self, tag: str, run_immediately: bool = True) -> SchedulerHandle:
        """Arm the tag's interval job, replacing any existing one."""
        config = self.registry.get(tag)
        if tag in self._handles:
            logger.warning("Endpoint already running, replacing job", tag=tag)
            self.stop_endpoint(tag)

        job_id = _job_id(tag)
        job_kwargs: Dict[str, Any] = {}
        if run_immediately:
            job_kwargs["next_run_time"] = datetime.now(timezone.utc)
        self.scheduler.add_job(
            self.run_tick,
            trigger=IntervalTrigger(seconds=config.check_interval_seconds),
            id=job_id,
            args=(tag,),
            name=f"check {tag}",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            **job_kwargs,
        )
        handle = SchedulerHandle(tag=tag, job_id=job_id, last_known_interval_ms=config.check_interval_ms)
        self._handles[tag] = handle
        logger.info(
            "Endpoint scheduler started",
            event_type="SYSTEM",
            tag=tag,
            interval_ms=config.check_interval_ms,
            run_immediately=run_immediately,
        )
        return handle

    def stop_endpoint(self, tag: str) -> bool:
        """Remove the tag's pending job; an in-flight tick finishes on its own."""
        handle = self._handles.pop(tag, None)
        if handle is None:
            return False
        try:
            self.scheduler.remove_job(handle.job_id)
        except JobLookupError:
            logger.warning("Scheduler job already gone", tag=tag, job_id=handle.job_id)
        logger.info("Endpoint scheduler stopped", event_type="SYSTEM", tag=tag)
        return True

    def restart_endpoint(self, tag: str, run_immediately: bool = True) -> SchedulerHandle:
        self.stop_endpoint(tag)
        return self.start_endpoint(tag, run_immediately=run_immediately)

    def start_active(self) -> List[str]:
        started: List[str] = []
        for tag in self.registry.active_tags():
            try:
                self.start_endpoint(tag)
            except AlertMonitorError as e:
                logger.error("Could not start endpoint", event_type="SYSTEM", tag=tag, error=str(e))
                continue
            started.append(tag)
        logger.info("Started active endpoints", count=len(started), tags=started)
        return started

    def reschedule_if_needed(self, tag: str) -> bool:
        """Re-arm the job when the configured interval no longer matches the armed one."""
        handle = self._handles.get(tag)
        if handle is None:
            return False
        try:
            config = self.registry.get(tag)
        except AlertMonitorError as e:
            logger.warning("Reschedule check skipped", tag=tag, error=str(e))
            return False
        if config.check_interval_ms == handle.last_known_interval_ms:
            return False

        self.scheduler.reschedule_job(handle.job_id, trigger=IntervalTrigger(seconds=config.check_interval_seconds))
        logger.info(
            "Endpoint interval changed, rescheduled",
            event_type="SYSTEM",
            tag=tag,
            old_interval_ms=handle.last_known_interval_ms,
            new_interval_ms=config.check_interval_ms,
        )
        handle.last_known_interval_ms = config.check_interval_ms
        handle.replacements += 1
        return True

    async def run_tick(self, tag: str) -> TickOutcome:
        """Job body: one serialized tick followed by the reschedule check."""
        outcome = TickOutcome.ERROR
        try:
            async with self.locks.get(tag):
                outcome = await self.checker.check_and_notify(tag)
            self.reschedule_if_needed(tag)
        except Exception:
            logger.exception("Scheduled tick failed", event_type="SYSTEM", tag=tag)
        logger.debug("Tick finished", tag=tag, outcome=outcome.value)
        return outcome

    async def run_now(self, tag: str) -> TickOutcome:
        if not self.registry.exists(tag):
            raise EndpointNotFoundError(tag)
        return await self.run_tick(tag)

    def cleanup(self) -> List[str]:
        """Stop every running tag that is no longer in the active set."""
        active = set(self.registry.active_tags())
        stopped = [tag for tag in self.running_tags() if tag not in active]
        for tag in stopped:
            self.stop_endpoint(tag)
        if stopped:
            logger.info("Stopped schedulers for inactive endpoints", tags=stopped)
        return stopped

    # --- registry-backed operations -----------------------------------------

    def activate(self, tag: str, run_immediately: bool = True) -> SchedulerHandle:
        self.registry.add_active_tag(tag)
        return self.start_endpoint(tag, run_immediately=run_immediately)

    def deactivate(self, tag: str) -> bool:
        self.registry.remove_active_tag(tag)
        return self.stop_endpoint(tag)

    def toggle_active(self, tag: str) -> bool:
        """Flip the tag's active flag and start or stop its timer to match."""
        if self.registry.toggle_active_tag(tag):
            self.start_endpoint(tag)
            return True
        self.stop_endpoint(tag)
        return False

    def set_active(self, tags: List[str]) -> Dict[str, List[str]]:
        """Replace the active set, then start newly active timers and stop the rest."""
        active = self.registry.set_active_tags(tags)
        started: List[str] = []
        stopped: List[str] = []
        for tag in active:
            if not self.is_running(tag):
                self.start_endpoint(tag)
                started.append(tag)
        for tag in self.running_tags():
            if tag not in active:
                self.stop_endpoint(tag)
                stopped.append(tag)
        logger.info("Active endpoints replaced", event_type="SYSTEM", active=active, started=started, stopped=stopped)
        return {"active": active, "started": started, "stopped": stopped}

    def save_endpoint(self, tag: str, partial: Dict[str, Any]) -> EndpointConfig:
        """Upsert the config and restart its timer if it is running."""
        config = self.registry.upsert(tag, partial)
        if self.is_running(config.tag):
            self.restart_endpoint(config.tag, run_immediately=False)
        return config

    async def delete_endpoint(self, tag: str) -> RemoveResult:
        """Remove the config; a deleted tag's state goes only after its in-flight tick saved."""
        was_running = self.stop_endpoint(tag)
        result = self.registry.remove(tag)
        if result.deleted:
            async with self.locks.get(tag):
                self.store.delete(tag)
            self.locks.discard(tag)
        elif was_running:
            self.start_endpoint(tag, run_immediately=False)
        return result

    # --- introspection -----------------------------------------------------

    def is_running(self, tag: str) -> bool:
        return tag in self._handles

    def running_tags(self) -> List[str]:
        return list(self._handles)

    def handle(self, tag: str) -> Optional[SchedulerHandle]:
        return self._handles.get(tag)

    def status(self) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        for tag, handle in self._handles.items():
            job = self.scheduler.get_job(handle.job_id)
            next_run = getattr(job, "next_run_time", None) if job is not None else None
            out.append(
                {
                    "tag": tag,
                    "job_id": handle.job_id,
                    "interval_ms": handle.last_known_interval_ms,
                    "replacements": handle.replacements,
                    "started_at": handle.started_at.isoformat(),
                    "next_run_time": next_run.isoformat() if next_run else None,
                }
            )
        return out
