"""
Q&A Session Coordinator
=======================

Holds in-memory question sessions between the agent and the browser user.

Flow:
1. Agent (MCP tool) or the /api/debug route calls create_session(questions).
   A session timer is armed on the event loop for timeout_ms.
2. The notifier pushes the questions to every connected browser tab.
3. The agent awaits wait_for_answers(session_id).
4. The browser POSTs /api/questions/answer → submit_answers(), which races
   the session timer.

Each session moves pending → answered or pending → timeout, exactly once.
Every mutation happens on the event loop thread (timer callbacks, route
handlers, tool coroutines), so whichever of submit_answers / timeout_session
sees `pending` first wins without a lock; the loser is a no-op.

State is process-local and is lost on restart; an in-flight wait does not
survive a restart.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from debug_bridge.core.errors import SessionNotFoundError, SessionTimeoutError
from debug_bridge.core.utils import generate_id, now_ms
from debug_bridge.models.questions import Answer, Question, QuestionSession, SessionStatus

DEFAULT_TIMEOUT_MS = 120_000
DEFAULT_MAX_AGE_MS = 3_600_000
SESSION_ID_LENGTH = 12

Notify = Callable[[str], None]


@dataclass
class _SessionEntry:
    """Session record plus its loop-side bookkeeping."""
    session: QuestionSession
    timer: Optional[asyncio.TimerHandle] = None
    waiter: Optional[asyncio.Future] = None

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def fail_waiter(self, exc: Exception) -> None:
        if self.waiter is not None and not self.waiter.done():
            self.waiter.set_exception(exc)
        self.waiter = None


def _consume_exception(fut: asyncio.Future) -> None:
    # A waiter whose caller already gave up must not log "exception never retrieved"
    if not fut.cancelled():
        fut.exception()


class QuestionSessionManager:
    """Creates, answers, times out and evicts Q&A sessions."""

    def __init__(
        self,
        notify: Optional[Notify] = None,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        clock: Callable[[], int] = now_ms,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._sessions: Dict[str, _SessionEntry] = {}
        self._notify = notify
        self._default_timeout_ms = default_timeout_ms
        self._clock = clock
        self._log = logger or logging.getLogger(__name__)

    def set_notifier(self, notify: Optional[Notify]) -> None:
        self._notify = notify

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_session(self, questions: Sequence[Question], timeout_ms: Optional[int] = None) -> str:
        """Store a pending session and arm its timer. Must run on the event loop."""
        loop = asyncio.get_running_loop()
        timeout_ms = self._default_timeout_ms if timeout_ms is None else timeout_ms

        session_id = generate_id(SESSION_ID_LENGTH)
        while session_id in self._sessions:
            session_id = generate_id(SESSION_ID_LENGTH)

        entry = _SessionEntry(
            session=QuestionSession(
                id=session_id,
                questions=list(questions),
                created_at=self._clock(),
                timeout_ms=timeout_ms,
            )
        )
        entry.timer = loop.call_later(timeout_ms / 1000, self.timeout_session, session_id)
        self._sessions[session_id] = entry

        self._log.info(
            "Created Q&A session: %s", session_id,
            extra={"questions": len(entry.session.questions), "timeout_ms": timeout_ms},
        )
        return session_id

    def get_session(self, session_id: str) -> Optional[QuestionSession]:
        entry = self._sessions.get(session_id)
        return entry.session if entry else None

    def submit_answers(self, session_id: str, answers: Sequence[Answer]) -> bool:
        """Record answers for a pending session.

        Returns False (and changes nothing) if the session is unknown or
        already answered / timed out.
        """
        entry = self._sessions.get(session_id)
        if entry is None:
            self._log.warning("Session not found: %s", session_id)
            return False

        session = entry.session
        if session.status != SessionStatus.PENDING:
            self._log.warning("Session already %s: %s", session.status.value, session_id)
            return False

        session.answers = list(answers)
        session.status = SessionStatus.ANSWERED
        session.answered_at = self._clock()
        entry.cancel_timer()

        if entry.waiter is not None and not entry.waiter.done():
            entry.waiter.set_result(list(session.answers))
        entry.waiter = None

        self._log.info("Answers submitted for session: %s", session_id, extra={"answers": len(answers)})
        return True

    async def wait_for_answers(self, session_id: str) -> List[Answer]:
        """Suspend until the session is answered or times out.

        Raises:
            SessionNotFoundError: unknown session, or evicted while waiting.
            SessionTimeoutError: the session expired before an answer arrived.
        """
        entry = self._sessions.get(session_id)
        if entry is None:
            raise SessionNotFoundError(detail=f"Session not found: {session_id}")

        session = entry.session
        if session.status == SessionStatus.ANSWERED:
            return list(session.answers)
        if session.status == SessionStatus.TIMEOUT:
            raise SessionTimeoutError(detail=f"Session timed out: {session_id}")

        if entry.waiter is None:
            entry.waiter = asyncio.get_running_loop().create_future()
            entry.waiter.add_done_callback(_consume_exception)
        waiter = entry.waiter

        try:
            # shield: one waiter giving up must not cancel the shared future
            return await asyncio.wait_for(asyncio.shield(waiter), timeout=session.timeout_ms / 1000)
        except asyncio.TimeoutError:
            if waiter.done() and not waiter.cancelled() and waiter.exception() is None:
                return waiter.result()
            # Caller-local deadline beat the session timer: settle the session too
            self.timeout_session(session_id)
            raise SessionTimeoutError(detail=f"Session timed out: {session_id}") from None

    def timeout_session(self, session_id: str) -> None:
        """Flip a pending session to timeout; no-op otherwise."""
        entry = self._sessions.get(session_id)
        if entry is None or entry.session.status != SessionStatus.PENDING:
            return

        entry.session.status = SessionStatus.TIMEOUT
        entry.cancel_timer()
        entry.fail_waiter(SessionTimeoutError(detail=f"Session timed out: {session_id}"))

        self._log.warning("Session timed out: %s", session_id)

    def cleanup(self, max_age_ms: int = DEFAULT_MAX_AGE_MS) -> int:
        """Evict every session created before now - max_age_ms, whatever its status."""
        cutoff = self._clock() - max_age_ms
        expired = [sid for sid, e in self._sessions.items() if e.session.created_at < cutoff]

        for session_id in expired:
            entry = self._sessions.pop(session_id)
            entry.cancel_timer()
            entry.fail_waiter(SessionNotFoundError(detail=f"Session evicted: {session_id}"))

        if expired:
            self._log.info("Cleaned up %d old Q&A sessions", len(expired))
        return len(expired)

    def shutdown(self) -> None:
        """Cancel every timer and waiter. Used on process exit."""
        for entry in self._sessions.values():
            entry.cancel_timer()
            if entry.waiter is not None and not entry.waiter.done():
                entry.waiter.cancel()
            entry.waiter = None
        self._sessions.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_active_session_count(self) -> int:
        return sum(1 for e in self._sessions.values() if e.session.status == SessionStatus.PENDING)

    def __len__(self) -> int:
        return len(self._sessions)

    # ------------------------------------------------------------------
    # Agent-facing convenience
    # ------------------------------------------------------------------

    def notify(self, session_id: str) -> None:
        """Fire-and-forget push; a failing notifier never affects the session."""
        if self._notify is None:
            self._log.warning("No notifier configured for session %s", session_id)
            return
        try:
            self._notify(session_id)
        except Exception:
            self._log.exception("Notifier failed for session %s", session_id)

    async def ask(self, questions: Sequence[Question], timeout_ms: Optional[int] = None) -> List[Answer]:
        """Create a session, notify listeners, and wait for the answers."""
        session_id = self.create_session(questions, timeout_ms)
        self.notify(session_id)
        return await self.wait_for_answers(session_id)
