"""
Tests for QuestionSessionManager — lifecycle, answer/timeout race, waiters, cleanup.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from debug_bridge.core.errors import SessionNotFoundError, SessionTimeoutError
from debug_bridge.models.questions import Answer, Question, QuestionType, SessionStatus
from debug_bridge.services.question_sessions import QuestionSessionManager


class FakeClock:
    def __init__(self, now: int = 1_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


QUESTIONS = [
    Question(id="q1", text="What happened?", type=QuestionType.TEXT, required=True),
    Question(id="q2", text="What did you expect?", type=QuestionType.TEXT, required=True),
]


def _answers(ts: int = 1):
    return [
        Answer(question_id="q1", answer="clicked save", timestamp=ts),
        Answer(question_id="q2", answer="a toast", timestamp=ts),
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(clock):
    mgr = QuestionSessionManager(clock=clock)
    yield mgr
    mgr.shutdown()


class TestCreateSession:
    @pytest.mark.asyncio
    async def test_starts_pending(self, manager, clock):
        sid = manager.create_session(QUESTIONS, 10_000)

        session = manager.get_session(sid)
        assert session.status == SessionStatus.PENDING
        assert session.created_at == clock.now
        assert session.timeout_ms == 10_000
        assert [q.id for q in session.questions] == ["q1", "q2"]
        assert session.answers == []

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, manager):
        ids = {manager.create_session(QUESTIONS, 10_000) for _ in range(50)}
        assert len(ids) == 50

    @pytest.mark.asyncio
    async def test_uses_default_timeout(self, clock):
        mgr = QuestionSessionManager(default_timeout_ms=4321, clock=clock)
        sid = mgr.create_session(QUESTIONS)
        assert mgr.get_session(sid).timeout_ms == 4321
        mgr.shutdown()

    def test_unknown_session_is_none(self, manager):
        assert manager.get_session("nope") is None


class TestSubmitAnswers:
    @pytest.mark.asyncio
    async def test_answers_pending_session(self, manager, clock):
        sid = manager.create_session(QUESTIONS, 10_000)
        clock.now += 500

        assert manager.submit_answers(sid, _answers()) is True

        session = manager.get_session(sid)
        assert session.status == SessionStatus.ANSWERED
        assert session.answered_at == clock.now
        assert [a.answer for a in session.answers] == ["clicked save", "a toast"]

    def test_unknown_session_returns_false(self, manager):
        assert manager.submit_answers("missing", _answers()) is False

    @pytest.mark.asyncio
    async def test_second_submit_is_rejected(self, manager):
        sid = manager.create_session(QUESTIONS, 10_000)
        assert manager.submit_answers(sid, _answers()) is True

        late = [Answer(question_id="q1", answer="other", timestamp=2)]
        assert manager.submit_answers(sid, late) is False
        assert manager.get_session(sid).answers[0].answer == "clicked save"

    @pytest.mark.asyncio
    async def test_rejected_submit_leaves_other_sessions_alone(self, manager):
        answered = manager.create_session(QUESTIONS, 10_000)
        pending = manager.create_session(QUESTIONS, 10_000)
        manager.submit_answers(answered, _answers())

        assert manager.submit_answers(answered, _answers()) is False
        assert manager.submit_answers("missing", _answers()) is False

        assert manager.get_session(pending).status == SessionStatus.PENDING
        assert manager.get_session(pending).answers == []

    @pytest.mark.asyncio
    async def test_submit_after_timeout_is_rejected(self, manager):
        sid = manager.create_session(QUESTIONS, 10_000)
        manager.timeout_session(sid)

        assert manager.submit_answers(sid, _answers()) is False
        assert manager.get_session(sid).status == SessionStatus.TIMEOUT

    @pytest.mark.asyncio
    async def test_answer_before_deadline_is_never_timed_out(self, manager):
        sid = manager.create_session(QUESTIONS, 30)
        manager.submit_answers(sid, _answers())

        await asyncio.sleep(0.06)

        assert manager.get_session(sid).status == SessionStatus.ANSWERED


class TestTimeout:
    @pytest.mark.asyncio
    async def test_timer_flips_to_timeout(self, manager):
        sid = manager.create_session(QUESTIONS, 20)
        await asyncio.sleep(0.05)
        assert manager.get_session(sid).status == SessionStatus.TIMEOUT

    @pytest.mark.asyncio
    async def test_timeout_on_answered_is_noop(self, manager):
        sid = manager.create_session(QUESTIONS, 10_000)
        manager.submit_answers(sid, _answers())

        manager.timeout_session(sid)

        assert manager.get_session(sid).status == SessionStatus.ANSWERED

    def test_timeout_unknown_is_noop(self, manager):
        manager.timeout_session("missing")


class TestWaitForAnswers:
    @pytest.mark.asyncio
    async def test_resolves_with_submitted_answers(self, manager):
        sid = manager.create_session(QUESTIONS, 5_000)
        answers = _answers()

        waiter = asyncio.create_task(manager.wait_for_answers(sid))
        await asyncio.sleep(0)
        manager.submit_answers(sid, answers)

        assert await waiter == answers

    @pytest.mark.asyncio
    async def test_already_answered_returns_immediately(self, manager):
        sid = manager.create_session(QUESTIONS, 5_000)
        manager.submit_answers(sid, _answers())

        result = await manager.wait_for_answers(sid)
        assert [a.question_id for a in result] == ["q1", "q2"]

    @pytest.mark.asyncio
    async def test_unknown_session_raises_not_found(self, manager):
        with pytest.raises(SessionNotFoundError):
            await manager.wait_for_answers("missing")

    @pytest.mark.asyncio
    async def test_timed_out_session_raises_immediately(self, manager):
        sid = manager.create_session(QUESTIONS, 5_000)
        manager.timeout_session(sid)

        with pytest.raises(SessionTimeoutError):
            await manager.wait_for_answers(sid)

    @pytest.mark.asyncio
    async def test_unanswered_session_times_out(self, manager):
        sid = manager.create_session(QUESTIONS, 50)

        waiter = asyncio.create_task(manager.wait_for_answers(sid))
        await asyncio.sleep(0.06)

        with pytest.raises(SessionTimeoutError):
            await waiter
        assert manager.get_session(sid).status == SessionStatus.TIMEOUT

    @pytest.mark.asyncio
    async def test_multiple_waiters_share_result(self, manager):
        sid = manager.create_session(QUESTIONS, 5_000)

        first = asyncio.create_task(manager.wait_for_answers(sid))
        second = asyncio.create_task(manager.wait_for_answers(sid))
        await asyncio.sleep(0)
        manager.submit_answers(sid, _answers())

        one, two = await asyncio.gather(first, second)
        assert one == two

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_break_session(self, manager):
        sid = manager.create_session(QUESTIONS, 5_000)

        doomed = asyncio.create_task(manager.wait_for_answers(sid))
        await asyncio.sleep(0)
        doomed.cancel()
        with pytest.raises(asyncio.CancelledError):
            await doomed

        survivor = asyncio.create_task(manager.wait_for_answers(sid))
        await asyncio.sleep(0)
        assert manager.submit_answers(sid, _answers()) is True
        assert len(await survivor) == 2

    @pytest.mark.asyncio
    async def test_evicted_while_waiting_raises_not_found(self, manager, clock):
        sid = manager.create_session(QUESTIONS, 5_000)
        waiter = asyncio.create_task(manager.wait_for_answers(sid))
        await asyncio.sleep(0)

        clock.now += 10_000
        manager.cleanup(max_age_ms=1_000)

        with pytest.raises(SessionNotFoundError):
            await waiter


class TestCleanup:
    @pytest.mark.asyncio
    async def test_removes_only_old_sessions(self, manager, clock):
        old_answered = manager.create_session(QUESTIONS, 60_000)
        manager.submit_answers(old_answered, _answers())
        old_pending = manager.create_session(QUESTIONS, 60_000)

        clock.now += 5_000
        fresh = manager.create_session(QUESTIONS, 60_000)

        clock.now += 1_000
        removed = manager.cleanup(max_age_ms=3_000)

        assert removed == 2
        assert manager.get_session(old_answered) is None
        assert manager.get_session(old_pending) is None
        assert manager.get_session(fresh) is not None

    @pytest.mark.asyncio
    async def test_noop_when_nothing_is_old(self, manager, clock):
        sid = manager.create_session(QUESTIONS, 60_000)

        assert manager.cleanup(max_age_ms=3_600_000) == 0
        assert manager.get_session(sid).status == SessionStatus.PENDING
        assert len(manager) == 1

    @pytest.mark.asyncio
    async def test_boundary_is_kept(self, manager, clock):
        sid = manager.create_session(QUESTIONS, 60_000)
        clock.now += 1_000

        # created_at == now - max_age is not strictly older
        assert manager.cleanup(max_age_ms=1_000) == 0
        assert manager.get_session(sid) is not None


class TestActiveCount:
    @pytest.mark.asyncio
    async def test_counts_pending_only(self, manager):
        a = manager.create_session(QUESTIONS, 60_000)
        b = manager.create_session(QUESTIONS, 60_000)
        manager.create_session(QUESTIONS, 60_000)

        manager.submit_answers(a, _answers())
        manager.timeout_session(b)

        assert manager.get_active_session_count() == 1
        assert len(manager) == 3


class TestNotifyAndAsk:
    @pytest.mark.asyncio
    async def test_notify_calls_notifier(self, clock):
        notify = MagicMock()
        mgr = QuestionSessionManager(notify=notify, clock=clock)
        sid = mgr.create_session(QUESTIONS, 60_000)

        mgr.notify(sid)

        notify.assert_called_once_with(sid)
        mgr.shutdown()

    @pytest.mark.asyncio
    async def test_failing_notifier_does_not_propagate(self, clock):
        mgr = QuestionSessionManager(notify=MagicMock(side_effect=RuntimeError("socket gone")), clock=clock)
        sid = mgr.create_session(QUESTIONS, 60_000)

        mgr.notify(sid)

        assert mgr.get_session(sid).status == SessionStatus.PENDING
        mgr.shutdown()

    def test_notify_without_notifier_is_noop(self, manager):
        manager.notify("anything")

    @pytest.mark.asyncio
    async def test_ask_round_trip(self, clock):
        mgr = QuestionSessionManager(clock=clock)
        seen = []

        def notify(session_id):
            seen.append(session_id)
            asyncio.get_running_loop().call_soon(mgr.submit_answers, session_id, _answers())

        mgr.set_notifier(notify)
        answers = await mgr.ask(QUESTIONS, 5_000)

        assert len(seen) == 1
        assert [a.question_id for a in answers] == ["q1", "q2"]
        assert mgr.get_session(seen[0]).status == SessionStatus.ANSWERED
        mgr.shutdown()


class TestEndToEndTimeout:
    @pytest.mark.asyncio
    async def test_unanswered_two_question_session(self):
        mgr = QuestionSessionManager()
        sid = mgr.create_session(QUESTIONS, 50)

        waiter = asyncio.create_task(mgr.wait_for_answers(sid))
        await asyncio.sleep(0.06)

        with pytest.raises(SessionTimeoutError):
            await waiter
        assert mgr.get_session(sid).status == SessionStatus.TIMEOUT
        mgr.shutdown()


class TestShutdown:
    @pytest.mark.asyncio
    async def test_cancels_waiters_and_clears(self, manager):
        sid = manager.create_session(QUESTIONS, 60_000)
        waiter = asyncio.create_task(manager.wait_for_answers(sid))
        await asyncio.sleep(0)

        manager.shutdown()

        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert len(manager) == 0
