from __future__ import annotations

import logging
import queue
import threading
import uuid
from collections import deque
from typing import Deque, Dict, Optional

from tapeviz.control import DEFAULT_STEP_DELAY, POLL_INTERVAL
from tapeviz.controller import ExecutionController
from tapeviz.interpreter import TraceEvent
from tapeviz.visualizer import TapeView

logger = logging.getLogger(__name__)


class SessionView(TapeView):
    """TapeView that also keeps the most recent trace events."""

    def __init__(self, history_limit: int = 200) -> None:
        self.history_limit = history_limit
        super().__init__()

    def reset(self) -> None:
        super().reset()
        with self._lock:
            self.events: Deque[TraceEvent] = deque(maxlen=self.history_limit)

    def trace_event(self, event: TraceEvent) -> None:
        with self._lock:
            self.events.append(event)

    def recent_events(self) -> list[TraceEvent]:
        with self._lock:
            return list(self.events)


class SessionRecord:
    """One remote viewer: a controller, its view and the pending input prompt."""

    def __init__(
        self,
        session_id: str,
        code: str,
        step_delay: float = DEFAULT_STEP_DELAY,
        history_limit: int = 200,
    ) -> None:
        self.session_id = session_id
        self.code = code
        self.view = SessionView(history_limit=history_limit)
        self.controller = ExecutionController(self.view, self._prompt, step_delay=step_delay)
        self._answers: "queue.Queue[str]" = queue.Queue()
        self._lock = threading.Lock()
        self._drain_thread: Optional[threading.Thread] = None
        self.awaiting_input = False
        self.input_cell: Optional[int] = None

    def start(self, code: Optional[str] = None) -> None:
        with self._lock:
            if code is not None:
                self.code = code
            # raises RunInProgress while the previous run thread is alive
            self.controller.start(self.code)
            self._drain_thread = threading.Thread(
                target=self.controller.drain,
                name=f"tapeviz-drain-{self.session_id[:8]}",
                daemon=True,
            )
            self._drain_thread.start()

    def is_running(self) -> bool:
        drain = self._drain_thread
        return self.controller.is_running() or (drain is not None and drain.is_alive())

    def is_paused(self) -> bool:
        control = self.controller.control
        return control is not None and control.paused and self.is_running()

    def answer(self, value: str) -> None:
        with self._lock:
            if not self.awaiting_input:
                raise LookupError("No input is pending for this session")
            self._answers.put(value)

    def reset(self) -> None:
        self.controller.reset()

    def close(self) -> None:
        self.controller.reset()
        self.controller.join(timeout=1.0)

    def _prompt(self, cell: int) -> Optional[str]:
        control = self.controller.control
        with self._lock:
            while not self._answers.empty():
                self._answers.get_nowait()
            self.awaiting_input = True
            self.input_cell = cell
        logger.debug("Session %s waiting for input for cell %d", self.session_id, cell)
        try:
            while control is None or not control.cancel_requested:
                try:
                    return self._answers.get(timeout=POLL_INTERVAL)
                except queue.Empty:
                    continue
            return None
        finally:
            with self._lock:
                self.awaiting_input = False
                self.input_cell = None


class SessionStore:
    """Thread-safe registry for SessionRecord instances."""

    def __init__(self) -> None:
        self._sessions: Dict[str, SessionRecord] = {}
        self._lock = threading.RLock()

    def create_session(
        self,
        *,
        code: str,
        step_delay: float = DEFAULT_STEP_DELAY,
        history_limit: int = 200,
    ) -> SessionRecord:
        session_id = uuid.uuid4().hex
        record = SessionRecord(
            session_id=session_id,
            code=code,
            step_delay=step_delay,
            history_limit=history_limit,
        )
        with self._lock:
            self._sessions[session_id] = record
        return record

    def get(self, session_id: str) -> SessionRecord:
        with self._lock:
            try:
                return self._sessions[session_id]
            except KeyError as exc:
                raise KeyError(f"Unknown session id: {session_id}") from exc

    def remove(self, session_id: str) -> bool:
        with self._lock:
            record = self._sessions.pop(session_id, None)
        if record is None:
            return False
        record.close()
        return True

    def clear(self) -> None:
        with self._lock:
            records = list(self._sessions.values())
            self._sessions.clear()
        for record in records:
            record.close()


__all__ = ["SessionView", "SessionRecord", "SessionStore"]
