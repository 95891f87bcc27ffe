"""
Tests for ReportStore — round-trip, listing order, retention sweep, bad files.
"""

import json

import pytest

from debug_bridge.core.errors import ValidationError
from debug_bridge.core.utils import MS_PER_DAY, date_partition, now_ms
from debug_bridge.models.reports import DebugReport, ErrorInfo, LogEntry
from debug_bridge.services.report_store import ReportStore, report_filename


def make_report(report_id: str, timestamp: int, **kwargs) -> DebugReport:
    fields = {
        "id": report_id,
        "timestamp": timestamp,
        "url": "http://localhost:3000/cart",
        "user_agent": "pytest",
        "logs": [LogEntry(level="error", message="boom", timestamp=timestamp)],
    }
    fields.update(kwargs)
    return DebugReport(**fields)


@pytest.fixture
def store(tmp_path):
    return ReportStore(tmp_path)


class TestSaveAndGet:
    @pytest.mark.asyncio
    async def test_round_trip(self, store):
        report = make_report(
            "abc123",
            now_ms(),
            error=ErrorInfo(message="TypeError: x is undefined", stack="at cart.js:10", line_number=10),
            screenshot="screenshot-abc123.png",
            comment="checkout broke",
        )
        await store.save_report(report)

        loaded = await store.get_report("abc123")
        assert loaded == report

    @pytest.mark.asyncio
    async def test_written_to_date_partition(self, store, tmp_path):
        ts = now_ms()
        await store.save_report(make_report("p1", ts))

        path = tmp_path / "reports" / date_partition(ts) / report_filename("p1")
        assert path.is_file()
        on_disk = json.loads(path.read_text())
        assert on_disk["userAgent"] == "pytest"
        assert on_disk["logs"][0]["level"] == "error"

    @pytest.mark.asyncio
    async def test_save_same_id_overwrites(self, store):
        ts = now_ms()
        await store.save_report(make_report("dup", ts, comment="first"))
        await store.save_report(make_report("dup", ts, comment="second"))

        assert (await store.get_report("dup")).comment == "second"
        assert len(await store.list_reports()) == 1

    @pytest.mark.asyncio
    async def test_missing_report_is_none(self, store):
        await store.initialize()
        assert await store.get_report("nope") is None

    @pytest.mark.asyncio
    async def test_path_traversal_id_is_none(self, store):
        assert await store.get_report("../../etc/passwd") is None

    @pytest.mark.asyncio
    async def test_unsafe_id_rejected_on_save(self, store):
        with pytest.raises(ValidationError):
            await store.save_report(make_report("../escape", now_ms()))

    @pytest.mark.asyncio
    async def test_corrupt_file_reads_as_none(self, store, tmp_path):
        ts = now_ms()
        partition = tmp_path / "reports" / date_partition(ts)
        partition.mkdir(parents=True)
        (partition / report_filename("bad")).write_text("{not json")

        assert await store.get_report("bad") is None


class TestListReports:
    @pytest.mark.asyncio
    async def test_sorted_newest_first(self, store):
        await store.save_report(make_report("older", 100))
        await store.save_report(make_report("newer", 200))

        summaries = await store.list_reports()
        assert [s.id for s in summaries] == ["newer", "older"]

    @pytest.mark.asyncio
    async def test_sorted_across_partitions(self, store):
        now = now_ms()
        await store.save_report(make_report("two-days", now - 2 * MS_PER_DAY))
        await store.save_report(make_report("today", now))
        await store.save_report(make_report("one-day", now - MS_PER_DAY))

        assert [s.id for s in await store.list_reports()] == ["today", "one-day", "two-days"]

    @pytest.mark.asyncio
    async def test_summary_flags(self, store):
        ts = now_ms()
        await store.save_report(make_report("plain", ts))
        await store.save_report(make_report(
            "rich", ts + 1, error=ErrorInfo(message="x"), screenshot="screenshot-rich.png", comment="hi",
        ))

        by_id = {s.id: s for s in await store.list_reports()}
        assert by_id["plain"].has_error is False
        assert by_id["plain"].has_screenshot is False
        assert by_id["rich"].has_error is True
        assert by_id["rich"].has_screenshot is True
        assert by_id["rich"].comment == "hi"

    @pytest.mark.asyncio
    async def test_skips_malformed_files(self, store, tmp_path):
        ts = now_ms()
        await store.save_report(make_report("good", ts))
        partition = tmp_path / "reports" / date_partition(ts)
        (partition / report_filename("broken")).write_text("[]")
        (partition / "notes.txt").write_text("ignore me")

        assert [s.id for s in await store.list_reports()] == ["good"]

    @pytest.mark.asyncio
    async def test_skips_non_utf8_files(self, store, tmp_path):
        ts = now_ms()
        await store.save_report(make_report("good", ts))
        partition = tmp_path / "reports" / date_partition(ts)
        (partition / report_filename("garbled")).write_bytes(b"\xff\xfe{not utf8")

        assert [s.id for s in await store.list_reports()] == ["good"]
        assert (await store.get_latest_report()).id == "good"
        assert await store.get_report("garbled") is None

    @pytest.mark.asyncio
    async def test_empty_store(self, store):
        assert await store.list_reports() == []
        assert await store.get_latest_report() is None

    @pytest.mark.asyncio
    async def test_latest_report(self, store):
        await store.save_report(make_report("a", 100))
        await store.save_report(make_report("b", 300))
        await store.save_report(make_report("c", 200))

        assert (await store.get_latest_report()).id == "b"


class TestDeleteOldReports:
    @pytest.mark.asyncio
    async def test_deletes_only_old_reports(self, store, tmp_path):
        now = now_ms()
        old_a = make_report("old-a", now - 10 * MS_PER_DAY)
        old_b = make_report("old-b", now - 8 * MS_PER_DAY)
        fresh = make_report("fresh", now - 1 * MS_PER_DAY)
        for r in (old_a, old_b, fresh):
            await store.save_report(r)

        expected_bytes = sum(
            (tmp_path / "reports" / date_partition(r.timestamp) / report_filename(r.id)).stat().st_size
            for r in (old_a, old_b)
        )

        result = await store.delete_old_reports(7)

        assert result.deleted_count == 2
        assert result.freed_bytes == expected_bytes
        assert await store.get_report("old-a") is None
        assert await store.get_report("old-b") is None
        assert await store.get_report("fresh") == fresh

    @pytest.mark.asyncio
    async def test_removes_emptied_partitions(self, store, tmp_path):
        old_ts = now_ms() - 30 * MS_PER_DAY
        await store.save_report(make_report("ancient", old_ts))

        await store.delete_old_reports(7)

        assert not (tmp_path / "reports" / date_partition(old_ts)).exists()

    @pytest.mark.asyncio
    async def test_nothing_to_delete(self, store):
        await store.save_report(make_report("fresh", now_ms()))

        result = await store.delete_old_reports(7)

        assert result.deleted_count == 0
        assert result.freed_bytes == 0

    @pytest.mark.asyncio
    async def test_bad_file_is_skipped(self, store, tmp_path):
        old_ts = now_ms() - 10 * MS_PER_DAY
        await store.save_report(make_report("old", old_ts))
        partition = tmp_path / "reports" / date_partition(old_ts)
        (partition / report_filename("garbage")).write_text("{{{")

        result = await store.delete_old_reports(7)

        assert result.deleted_count == 1
        assert (partition / report_filename("garbage")).exists()

    @pytest.mark.asyncio
    async def test_missing_root_is_empty_result(self, store):
        result = await store.delete_old_reports(7)
        assert result.deleted_count == 0
