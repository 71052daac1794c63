"""
Threaded setup session.

Runs the orchestrator on a worker thread and talks to the caller through two
queues: progress events flow out, control commands (confirm or cancel) flow
in. Nothing is installed until the caller confirms.

Example:
    >>> session = SetupSession(plan, manifest).start()
    >>> session.confirm()
    >>> for event in session.events():
    ...     print(event.kind.value, event.runtime, event.message)
    >>> result = session.wait()
"""

import logging
import queue
import threading
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

from templatr_setup.engine.orchestrator import (
    EventKind,
    ExecutionResult,
    Orchestrator,
    OrchestratorEvent,
)
from templatr_setup.engine.plan import Plan
from templatr_setup.manifest.schema import Manifest

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Setup cancelled"


class Control(str, Enum):
    """Commands the caller can send to a waiting session."""

    CONFIRM = "confirm"
    CANCEL = "cancel"


class SetupSession:
    """
    One confirm-then-execute run of a plan on a background thread.

    Attributes:
        plan: Plan to execute
        manifest: Manifest the plan was built from
        orchestrator: Orchestrator doing the work; its on_event is replaced
            by the session's event queue
    """

    def __init__(
        self,
        plan: Plan,
        manifest: Manifest,
        orchestrator: Optional[Orchestrator] = None,
        project_dir: Optional[Path] = None,
    ):
        self.plan = plan
        self.manifest = manifest
        self.project_dir = project_dir
        self.orchestrator = orchestrator or Orchestrator()
        self.orchestrator.on_event = self._put_event

        self._events: "queue.Queue[OrchestratorEvent]" = queue.Queue()
        self._control: "queue.Queue[Control]" = queue.Queue()
        self._result: Optional[ExecutionResult] = None
        self._error: Optional[BaseException] = None
        self._thread = threading.Thread(
            target=self._run, name="templatr-setup-session", daemon=True
        )

    def start(self) -> "SetupSession":
        """Start the worker; it waits for confirm() or cancel()."""
        self._thread.start()
        return self

    def confirm(self) -> None:
        """Proceed with the plan."""
        self._control.put(Control.CONFIRM)

    def cancel(self) -> None:
        """Abort before anything is installed."""
        self._control.put(Control.CANCEL)

    def events(self, timeout: Optional[float] = None) -> Iterator[OrchestratorEvent]:
        """
        Yield events until the complete event (inclusive).

        Args:
            timeout: Seconds to wait for each event (None waits forever)

        Raises:
            queue.Empty: If no event arrives within timeout
        """
        while True:
            event = self._events.get(timeout=timeout)
            yield event
            if event.kind == EventKind.COMPLETE:
                return

    def wait(self, timeout: Optional[float] = None) -> ExecutionResult:
        """
        Wait for the worker and return its result.

        Raises:
            TimeoutError: If the worker is still running after timeout
            Exception: Whatever unexpected error stopped the worker
        """
        self._thread.join(timeout)
        if self._thread.is_alive():
            raise TimeoutError("Setup session is still running")
        if self._error is not None:
            raise self._error
        return self._result

    def _put_event(self, event: OrchestratorEvent) -> None:
        self._events.put(event)

    def _run(self) -> None:
        command = self._control.get()
        if command == Control.CANCEL:
            logger.info(CANCELLED_MESSAGE)
            self._result = ExecutionResult(success=False)
            self._put_event(
                OrchestratorEvent(EventKind.COMPLETE, success=False, message=CANCELLED_MESSAGE)
            )
            return

        try:
            self._result = self.orchestrator.execute(
                self.plan, self.manifest, project_dir=self.project_dir
            )
        except Exception as e:
            logger.exception("Setup session failed")
            self._error = e
            self._put_event(
                OrchestratorEvent(EventKind.COMPLETE, success=False, message=str(e))
            )


__all__ = ["Control", "SetupSession", "CANCELLED_MESSAGE"]
