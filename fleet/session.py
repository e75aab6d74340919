"""Explicit operator session passed into every engine.

Engines never read ambient global state: the control client, the refresh
hook and the cancellation token all travel in an OperatorSession.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from fleet.control_client import ContainerControlClient

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation checked by batch engines between items.

    Cancelling never interrupts an in-flight call; the engine stops issuing
    further calls and returns the ledger built so far.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


RefreshHook = Callable[[], Any]


@dataclass
class OperatorSession:
    """Everything a scan, bulk run or migration needs from its caller."""

    client: ContainerControlClient
    on_refresh: RefreshHook | None = None
    cancel_token: CancellationToken = field(default_factory=CancellationToken)

    async def notify_refresh(self) -> None:
        """Tell the caller once that node/container state changed.

        A failing hook is logged; it never turns a finished batch into an error.
        """
        if self.on_refresh is None:
            return
        try:
            result = self.on_refresh()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Refresh notification failed: {e}")
