"""Bulk dispatch scheduler - slow, cancellable mass messaging.

One job at a time walks its target list: personalize, deliver, record the
contact, then wait a random gap before the next target. The gap is waited on
the job's cancel event so a cancel takes effect within the poll interval.

Usage:
    job = scheduler.start(targets, "Hi {name}!", deliver=bridge_whatsapp)
    async for progress in job.stream():
        print(progress.status_text)
    job.cancel()
"""

from __future__ import annotations

import asyncio
import logging
import random
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal

from ..schemas.dispatch import DispatchProgress
from ..schemas.entities import Actor

logger = logging.getLogger(__name__)

Channel = Literal["whatsapp", "email"]
DeliverFn = Callable[[str, str], Awaitable[Any]]
PersonalizeFn = Callable[[str, dict[str, Any]], str]
ContactRecorder = Callable[[dict[str, Any], Channel, str, "Actor | None"], Any]

_TOKEN = re.compile(r"\{(\w+)\}")
_MIN_PHONE_DIGITS = 8


class DispatchAlreadyRunning(Exception):
    """Raised when a bulk dispatch is started while another is in progress."""


def _first_name(name: str) -> str:
    return name.split()[0] if name.strip() else ""


def personalize_message(template: str, target: dict[str, Any]) -> str:
    """Substitute {name}, {firstName}, {company} and any target field token.

    Unknown tokens are left as written.
    """
    name = str(target.get("name") or target.get("contactPerson") or "")
    values = {
        "name": name,
        "firstName": _first_name(name),
        "company": str(target.get("company") or target.get("companyName") or name),
    }

    def replace(match: re.Match) -> str:
        token = match.group(1)
        if token in values:
            return values[token]
        value = target.get(token)
        return match.group(0) if value is None else str(value)

    return _TOKEN.sub(replace, template)


def dispatch_address(target: dict[str, Any], channel: Channel) -> str | None:
    """The target's address for the channel, or None when it is not usable."""
    if channel == "email":
        email = str(target.get("email") or "").strip()
        local, _, domain = email.partition("@")
        if local and "." in domain:
            return email
        return None

    phone = str(target.get("phone") or "").strip()
    if sum(ch.isdigit() for ch in phone) >= _MIN_PHONE_DIGITS:
        return phone
    return None


@dataclass
class DispatchJob:
    """One bulk run: its target snapshot, progress and cancellation token."""

    targets: list[dict[str, Any]]
    template: str
    channel: Channel
    progress: DispatchProgress = field(default_factory=DispatchProgress)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    task: asyncio.Task | None = None
    _updates: asyncio.Queue = field(default_factory=asyncio.Queue)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        if not self.progress.finished:
            logger.info("Bulk dispatch cancel requested at %d/%d", self.progress.current_index, self.progress.total)
        self.cancel_event.set()

    async def wait(self) -> DispatchProgress:
        if self.task is not None:
            await self.task
        return self.progress

    def _publish(self, **changes: Any) -> None:
        self.progress = self.progress.model_copy(update=changes)
        self._updates.put_nowait(self.progress)

    async def stream(self):
        """Yield progress snapshots until the job finishes."""
        while True:
            progress = await self._updates.get()
            yield progress
            if progress.finished:
                return


class BulkDispatchScheduler:
    """Runs at most one bulk dispatch job at a time."""

    def __init__(
        self,
        record_contact: ContactRecorder,
        min_delay_seconds: float = 120.0,
        max_delay_seconds: float = 420.0,
        poll_interval_seconds: float = 1.0,
        rng: random.Random | None = None,
    ):
        if min_delay_seconds > max_delay_seconds:
            raise ValueError("min_delay_seconds must not exceed max_delay_seconds")
        self.record_contact = record_contact
        self.min_delay_seconds = min_delay_seconds
        self.max_delay_seconds = max_delay_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self._rng = rng or random.Random()
        self.current: DispatchJob | None = None

    @property
    def running(self) -> bool:
        return self.current is not None and not self.current.progress.finished

    def start(
        self,
        targets: list[dict[str, Any]],
        template: str,
        deliver: DeliverFn,
        *,
        channel: Channel = "whatsapp",
        personalize: PersonalizeFn | None = None,
        actor: Actor | None = None,
    ) -> DispatchJob:
        """Start a background run over the targets with a usable address."""
        if self.running:
            raise DispatchAlreadyRunning("A bulk dispatch is already in progress")

        valid = [dict(t) for t in targets if dispatch_address(t, channel)]
        skipped = len(targets) - len(valid)
        if skipped:
            logger.info("Bulk dispatch skipping %d target(s) without a valid %s address", skipped, channel)

        job = DispatchJob(targets=valid, template=template, channel=channel)
        job.progress = DispatchProgress(total=len(valid), status_text="Starting")
        job.task = asyncio.get_running_loop().create_task(
            self._run(job, deliver, personalize or personalize_message, actor),
            name="bulk-dispatch",
        )
        self.current = job
        return job

    def cancel(self) -> None:
        if self.current is not None:
            self.current.cancel()

    async def _run(
        self,
        job: DispatchJob,
        deliver: DeliverFn,
        personalize: PersonalizeFn,
        actor: Actor | None,
    ) -> None:
        total = len(job.targets)
        try:
            for idx, target in enumerate(job.targets):
                if job.cancelled:
                    break

                label = target.get("name") or target.get("id") or "target"
                job._publish(
                    state="running",
                    current_index=idx + 1,
                    status_text=f"Sending {idx + 1}/{total} to {label}",
                    next_delay_seconds=None,
                )
                address = dispatch_address(target, job.channel)
                content = personalize(job.template, target)
                try:
                    await deliver(address, content)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.warning("Bulk dispatch to %s failed: %s", address, e)
                    job._publish(failed=job.progress.failed + 1)
                else:
                    job._publish(sent=job.progress.sent + 1)
                    try:
                        self.record_contact(target, job.channel, content, actor)
                    except Exception:
                        logger.exception("Recording bulk contact for %s failed", label)

                # Failed sends are paced like successful ones.
                if idx < total - 1:
                    await self._pause(job)
        except asyncio.CancelledError:
            job._publish(state="cancelled", status_text=f"Cancelled. Sent {job.progress.sent}")
            raise
        except Exception:
            logger.exception("Bulk dispatch loop failed")

        if job.cancelled:
            job._publish(state="cancelled", status_text=f"Cancelled. Sent {job.progress.sent}", next_delay_seconds=None)
        else:
            job._publish(state="completed", status_text=f"Completed. Sent {job.progress.sent}", next_delay_seconds=None)
        logger.info("Bulk dispatch %s: %d sent, %d failed", job.progress.state, job.progress.sent, job.progress.failed)

    async def _pause(self, job: DispatchJob) -> None:
        delay = self._rng.uniform(self.min_delay_seconds, self.max_delay_seconds)
        job._publish(
            state="waiting",
            next_delay_seconds=delay,
            status_text=f"Waiting {int(delay)}s before next send",
        )
        loop = asyncio.get_running_loop()
        deadline = loop.time() + delay
        while not job.cancelled:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return
            try:
                await asyncio.wait_for(
                    job.cancel_event.wait(),
                    timeout=min(self.poll_interval_seconds, remaining),
                )
            except asyncio.TimeoutError:
                continue
