"""
Single in-flight save for a finalized Record.

The gateway call is blocking, so it runs in a worker thread while the
event loop stays responsive. Only one save may be pending at a time: a
second attempt while the first is in flight is answered with BUSY and
never reaches the gateway.

A SaveError never raises out of submit(). It comes back as a SaveOutcome
and the caller decides whether to retry.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from tsr.model import Record
from tsr.persistence import PersistenceGateway, RecordId, SaveError

logger = logging.getLogger(__name__)


class SaveStatus(Enum):
    SAVED = "saved"
    FAILED = "failed"
    BUSY = "busy"


@dataclass(frozen=True)
class SaveOutcome:
    status: SaveStatus
    record_id: Optional[RecordId] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is SaveStatus.SAVED


class SaveSubmission:
    """
    Guards a gateway so at most one save is in flight.

    Args:
        gateway: Any PersistenceGateway
        timeout: Seconds to wait for the gateway, None for no limit.
                 A timed-out save is reported as FAILED; the worker
                 thread is not cancelled. Cancelling submit() does not
                 cancel the worker either, and the save stays in flight
                 until the gateway returns.
    """

    def __init__(self, gateway: PersistenceGateway, timeout: Optional[float] = None):
        self.gateway = gateway
        self.timeout = timeout
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def _finished(self, task: asyncio.Future) -> None:
        self._in_flight = False
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Background save ended with %r", task.exception())

    async def submit(self, record: Record) -> SaveOutcome:
        if self._in_flight:
            logger.warning("Save already in progress, ignoring duplicate request")
            return SaveOutcome(SaveStatus.BUSY, error="A save is already in progress")

        self._in_flight = True
        task = asyncio.ensure_future(asyncio.to_thread(self.gateway.save, record))
        task.add_done_callback(self._finished)
        try:
            if self.timeout is not None:
                record_id = await asyncio.wait_for(asyncio.shield(task), self.timeout)
            else:
                record_id = await asyncio.shield(task)
        except SaveError as e:
            logger.warning("Save failed: %s", e)
            return SaveOutcome(SaveStatus.FAILED, error=str(e))
        except asyncio.TimeoutError:
            # The worker keeps running; the flag clears when it finishes
            logger.warning("Save timed out after %s seconds", self.timeout)
            return SaveOutcome(SaveStatus.FAILED, error=f"Save timed out after {self.timeout} seconds")
        finally:
            # A cancelled caller leaves the worker running; the callback clears the flag
            if task.done():
                self._in_flight = False

        logger.info("Record saved as %s", record_id)
        return SaveOutcome(SaveStatus.SAVED, record_id=record_id)
