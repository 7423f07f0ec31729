"""Delayed removal of finished job output directories."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
import shutil

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """Deletes output directories a fixed delay after they were produced.

    Removal is best effort: failures are logged and otherwise ignored, and
    timers pending at process exit are lost.
    """

    def __init__(self, *, delay_seconds: float = 3600.0) -> None:
        self._delay_seconds = delay_seconds
        self._pending: dict[Path, asyncio.TimerHandle] = {}

    @property
    def pending(self) -> list[Path]:
        return list(self._pending)

    def schedule(self, directory: Path) -> None:
        """Arrange for ``directory`` to be removed; must run on the event loop."""
        loop = asyncio.get_running_loop()
        existing = self._pending.pop(directory, None)
        if existing is not None:
            existing.cancel()
        self._pending[directory] = loop.call_later(self._delay_seconds, self.remove, directory)
        logger.info("retention.scheduled dir=%s delay_seconds=%s", directory.name, self._delay_seconds)

    def remove(self, directory: Path) -> None:
        self._pending.pop(directory, None)
        try:
            shutil.rmtree(directory)
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning("retention.remove_failed dir=%s reason=%s", directory.name, type(exc).__name__)
            return
        logger.info("retention.removed dir=%s", directory.name)

    def cancel_all(self) -> None:
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()
