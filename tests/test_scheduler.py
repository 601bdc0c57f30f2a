"""Tests for the reorganization scheduler.

This module tests:
- The single-document pipeline (exclusions, rule match, destination,
  folder creation, unique naming, rename, history)
- Debug rules, which only report
- Batched bulk runs and their pauses
- Dry-run preview
- Serialization of operations through the scheduler's guard
"""

import asyncio
import errno

import pytest

from conftest import FakeStore, RecordingNotifier, RecordingSleep
from vaultorg.organizer.history import MoveHistoryEntry, MoveHistoryManager
from vaultorg.organizer.scheduler import ReorganizationScheduler
from vaultorg.organizer.vault import Document
from vaultorg.rules.engine import Rule, RuleEngine
from vaultorg.rules.patterns import ExclusionMatcher


def build_scheduler(store, rules, exclusions=(), batch_size=100, sleep=None, notifier=None):
    return ReorganizationScheduler(
        store,
        RuleEngine(rules),
        ExclusionMatcher(exclusions),
        MoveHistoryManager(),
        notifier or RecordingNotifier(),
        batch_size=batch_size,
        batch_delay=0.01,
        sleep=sleep or RecordingSleep(),
    )


MEETING_RULE = Rule(key="type", value="meeting", destination="Meetings/{project}")


class TestSchedulerInit:
    """Test constructor validation."""

    def test_invalid_batch_size(self):
        with pytest.raises(ValueError, match="batch_size"):
            build_scheduler(FakeStore(), [], batch_size=0)

    def test_negative_delay(self):
        with pytest.raises(ValueError, match="batch_delay"):
            ReorganizationScheduler(
                FakeStore(),
                RuleEngine(),
                ExclusionMatcher(),
                MoveHistoryManager(),
                RecordingNotifier(),
                batch_delay=-1,
            )


class TestOnDocumentChanged:
    """Test the single-document pipeline."""

    @pytest.mark.asyncio
    async def test_moves_matching_document(self):
        store = FakeStore({"Inbox/kickoff.md": {"type": "meeting", "project": "Web"}})
        scheduler = build_scheduler(store, [MEETING_RULE])

        entry = await scheduler.on_document_changed(Document("Inbox/kickoff.md"))

        assert isinstance(entry, MoveHistoryEntry)
        assert entry.from_path == "Inbox/kickoff.md"
        assert entry.to_path == "Meetings/Web/kickoff.md"
        assert entry.rule_key == "type"
        assert "Meetings/Web/kickoff.md" in store.files
        assert "Meetings/Web" in store.folders
        assert scheduler.history.latest() == entry

    @pytest.mark.asyncio
    async def test_first_matching_rule_wins(self):
        store = FakeStore({"a.md": {"type": "meeting", "status": "done"}})
        rules = [
            Rule(key="status", value="done", destination="Archive"),
            Rule(key="type", value="meeting", destination="Meetings"),
        ]
        scheduler = build_scheduler(store, rules)

        entry = await scheduler.on_document_changed(Document("a.md"))

        assert entry.to_path == "Archive/a.md"

    @pytest.mark.asyncio
    async def test_non_markdown_ignored(self):
        store = FakeStore({"image.png": {"type": "meeting"}})
        scheduler = build_scheduler(store, [MEETING_RULE])

        assert await scheduler.on_document_changed(Document("image.png")) is None
        assert store.renames == []

    @pytest.mark.asyncio
    async def test_excluded_document_ignored(self):
        store = FakeStore({"Templates/meeting.md": {"type": "meeting"}})
        scheduler = build_scheduler(store, [MEETING_RULE], exclusions=["Templates"])

        assert await scheduler.on_document_changed(Document("Templates/meeting.md")) is None
        assert store.renames == []

    @pytest.mark.asyncio
    async def test_no_rule_or_no_frontmatter(self):
        store = FakeStore({"a.md": {"type": "note"}, "b.md": None})
        scheduler = build_scheduler(store, [MEETING_RULE])

        assert await scheduler.on_document_changed(Document("a.md")) is None
        assert await scheduler.on_document_changed(Document("b.md")) is None
        assert store.renames == []

    @pytest.mark.asyncio
    async def test_already_in_place(self):
        store = FakeStore({"Meetings/Web/a.md": {"type": "meeting", "project": "Web"}})
        scheduler = build_scheduler(store, [MEETING_RULE])

        assert await scheduler.on_document_changed(Document("Meetings/Web/a.md")) is None
        assert store.renames == []
        assert len(scheduler.history) == 0

    @pytest.mark.asyncio
    async def test_collision_gets_suffix(self):
        store = FakeStore(
            {
                "Inbox/a.md": {"type": "meeting", "project": "Web"},
                "Meetings/Web/a.md": {},
            }
        )
        scheduler = build_scheduler(store, [MEETING_RULE])

        entry = await scheduler.on_document_changed(Document("Inbox/a.md"))

        assert entry.to_path == "Meetings/Web/a 1.md"
        assert store.files["Meetings/Web/a.md"] == {}

    @pytest.mark.asyncio
    async def test_debug_rule_only_reports(self):
        store = FakeStore({"Inbox/a.md": {"type": "meeting", "project": "Web"}}, name="Notes")
        notifier = RecordingNotifier()
        rule = Rule(key="type", value="meeting", destination="Meetings/{project}", debug=True)
        scheduler = build_scheduler(store, [rule], notifier=notifier)

        assert await scheduler.on_document_changed(Document("Inbox/a.md")) is None

        assert notifier.messages == ["DEBUG: a would be moved to Notes/Meetings/Web"]
        assert store.renames == []
        assert len(scheduler.history) == 0

    @pytest.mark.asyncio
    async def test_debug_rule_with_empty_destination(self):
        store = FakeStore({"a.md": {"type": "meeting"}}, name="Notes")
        notifier = RecordingNotifier()
        rule = Rule(key="type", value="meeting", destination="{project}", debug=True)
        scheduler = build_scheduler(store, [rule], notifier=notifier)

        await scheduler.on_document_changed(Document("a.md"))

        assert notifier.messages == [
            "DEBUG: a would not be moved because destination is empty in Notes."
        ]

    @pytest.mark.asyncio
    async def test_invalid_destination_notifies(self):
        store = FakeStore({"a.md": {"type": "meeting"}})
        notifier = RecordingNotifier()
        rule = Rule(key="type", value="meeting", destination="/etc")
        scheduler = build_scheduler(store, [rule], notifier=notifier)

        assert await scheduler.on_document_changed(Document("a.md")) is None

        assert notifier.messages == [
            'Invalid path "/etc": Absolute paths are not allowed '
            "(Use relative paths within the vault)."
        ]
        assert store.renames == []

    @pytest.mark.asyncio
    async def test_rename_failure_notifies(self):
        store = FakeStore({"Inbox/a.md": {"type": "meeting", "project": "Web"}})
        store.fail_rename = PermissionError(errno.EACCES, "Permission denied")
        notifier = RecordingNotifier()
        scheduler = build_scheduler(store, [MEETING_RULE], notifier=notifier)

        assert await scheduler.on_document_changed(Document("Inbox/a.md")) is None

        assert notifier.messages == [
            'Permission denied: Cannot move "Inbox/a.md". Check file permissions and try again.'
        ]
        assert len(scheduler.history) == 0

    @pytest.mark.asyncio
    async def test_folder_failure_notifies(self):
        store = FakeStore({"Inbox/a.md": {"type": "meeting", "project": "Web"}})
        store.fail_ensure_folder = PermissionError(errno.EACCES, "Permission denied")
        notifier = RecordingNotifier()
        scheduler = build_scheduler(store, [MEETING_RULE], notifier=notifier)

        await scheduler.on_document_changed(Document("Inbox/a.md"))

        assert notifier.messages == [
            'Permission denied: Cannot create folder "Meetings/Web". '
            "Check file permissions and try again."
        ]


class TestReorganizeAll:
    """Test bulk runs."""

    @staticmethod
    def meetings(count):
        return {f"Inbox/m{i}.md": {"type": "meeting", "project": "Web"} for i in range(count)}

    @pytest.mark.asyncio
    async def test_moves_everything(self):
        store = FakeStore(self.meetings(3))
        scheduler = build_scheduler(store, [MEETING_RULE])

        result = await scheduler.reorganize_all()

        assert result.moved == 3
        assert result.skipped == []
        assert sorted(store.files) == [f"Meetings/Web/m{i}.md" for i in range(3)]
        assert len(scheduler.history) == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "count,batch_size,pauses", [(0, 2, 0), (4, 2, 2), (5, 2, 3), (1, 100, 1)]
    )
    async def test_pauses_after_each_batch(self, count, batch_size, pauses):
        sleep = RecordingSleep()
        scheduler = build_scheduler(
            FakeStore(self.meetings(count)), [MEETING_RULE], batch_size=batch_size, sleep=sleep
        )

        await scheduler.reorganize_all()

        assert sleep.calls == [0.01] * pauses

    @pytest.mark.asyncio
    async def test_non_markdown_not_counted(self):
        files = self.meetings(2)
        files["Inbox/photo.png"] = {"type": "meeting"}
        sleep = RecordingSleep()
        store = FakeStore(files)
        scheduler = build_scheduler(store, [MEETING_RULE], batch_size=2, sleep=sleep)

        result = await scheduler.reorganize_all()

        assert result.moved == 2
        assert len(sleep.calls) == 1
        assert "Inbox/photo.png" in store.files

    @pytest.mark.asyncio
    async def test_failures_skip_single_documents(self):
        files = self.meetings(2)
        files["Inbox/bad.md"] = {"type": "meeting", "project": "Web"}
        store = FakeStore(files)
        rules = [Rule(key="project", value="Web", destination="{missing}")]
        notifier = RecordingNotifier()
        scheduler = build_scheduler(store, rules, notifier=notifier)

        result = await scheduler.reorganize_all()

        assert result.moved == 0
        assert len(result.skipped) == 3
        assert result.skipped[0].path == "Inbox/bad.md"
        assert result.skipped[0].reason == 'Invalid path "": Path cannot be empty.'
        assert notifier.messages == []

    @pytest.mark.asyncio
    async def test_mixed_outcomes(self):
        store = FakeStore(
            {
                "Inbox/ok.md": {"type": "meeting", "project": "Web"},
                "Inbox/skip.md": {"type": "note"},
                "Inbox/zz.md": {"type": "meeting", "project": "Web"},
            }
        )
        scheduler = build_scheduler(store, [MEETING_RULE])
        original_rename = store.rename

        async def flaky_rename(document, new_path):
            if document.path == "Inbox/zz.md":
                raise OSError(errno.EBUSY, "Device or resource busy")
            await original_rename(document, new_path)

        store.rename = flaky_rename

        result = await scheduler.reorganize_all()

        assert result.moved == 1
        assert [s.path for s in result.skipped] == ["Inbox/zz.md"]
        assert "locked" in result.skipped[0].reason
        assert "Inbox/skip.md" in store.files


class TestPreview:
    """Test dry runs."""

    @pytest.mark.asyncio
    async def test_preview_moves_nothing(self):
        store = FakeStore(
            {
                "Inbox/a.md": {"type": "meeting", "project": "Web"},
                "Meetings/Web/a.md": {},
                "Meetings/Web/b.md": {"type": "meeting", "project": "Web"},
                "c.md": {"type": "meeting"},
                "d.md": {"type": "note"},
            }
        )
        sleep = RecordingSleep()
        rules = [MEETING_RULE]
        scheduler = build_scheduler(store, rules, batch_size=2, sleep=sleep)

        planned = await scheduler.preview_all()

        by_path = {move.path: move for move in planned}
        assert set(by_path) == {"Inbox/a.md", "c.md"}
        assert by_path["Inbox/a.md"].would_move
        assert by_path["Inbox/a.md"].new_path == "Meetings/Web/a 1.md"
        assert by_path["c.md"].would_move
        assert by_path["c.md"].new_path == "Meetings/c.md"
        assert by_path["c.md"].warnings == ["Missing variables: project"]
        assert store.renames == []
        assert len(scheduler.history) == 0
        assert len(sleep.calls) == 3

    @pytest.mark.asyncio
    async def test_preview_reports_invalid_destinations(self):
        store = FakeStore({"a.md": {"type": "meeting"}})
        rule = Rule(key="type", value="meeting", destination="Bad|Folder")
        scheduler = build_scheduler(store, [rule])

        planned = await scheduler.preview_all()

        assert len(planned) == 1
        assert not planned[0].would_move
        assert planned[0].error is not None

    def test_plan_single_document(self):
        store = FakeStore({"a.md": {"type": "meeting", "project": "X"}})
        scheduler = build_scheduler(store, [MEETING_RULE])

        move = scheduler.plan(Document("a.md"))

        assert move.rule is scheduler.rules.get_rules()[0]
        assert move.new_path == "Meetings/X/a.md"
        assert scheduler.plan(Document("b.png")) is None


class TestUndoAndClear:
    """Test history operations routed through the scheduler."""

    @pytest.mark.asyncio
    async def test_undo_notifies(self):
        store = FakeStore({"Inbox/a.md": {"type": "meeting", "project": "Web"}})
        notifier = RecordingNotifier()
        scheduler = build_scheduler(store, [MEETING_RULE], notifier=notifier)
        await scheduler.on_document_changed(Document("Inbox/a.md"))

        result = await scheduler.undo_last_move()

        assert result.success
        assert notifier.messages == ["Undone: Moved a.md back to Inbox/a.md"]
        assert "Inbox/a.md" in store.files

    @pytest.mark.asyncio
    async def test_undo_with_empty_history(self):
        notifier = RecordingNotifier()
        scheduler = build_scheduler(FakeStore(), [], notifier=notifier)

        result = await scheduler.undo_last_move()

        assert not result.success
        assert notifier.messages == ["No moves to undo."]

    @pytest.mark.asyncio
    async def test_clear_history(self):
        store = FakeStore({"Inbox/a.md": {"type": "meeting", "project": "Web"}})
        scheduler = build_scheduler(store, [MEETING_RULE])
        await scheduler.on_document_changed(Document("Inbox/a.md"))

        await scheduler.clear_history()

        assert len(scheduler.history) == 0


class TestGuard:
    """Operations never interleave."""

    @pytest.mark.asyncio
    async def test_change_waits_for_bulk_run(self):
        store = FakeStore({f"Inbox/m{i}.md": {"type": "meeting", "project": "W"} for i in range(2)})
        store.files["other.md"] = {"type": "note"}
        order = []
        pending = []

        async def sleep(delay):
            order.append("pause")
            if not pending:
                pending.append(asyncio.ensure_future(change()))
            for _ in range(5):
                await asyncio.sleep(0)

        async def change():
            assert scheduler.busy
            await scheduler.on_document_changed(Document("other.md"))
            order.append("change")

        scheduler = build_scheduler(store, [MEETING_RULE], batch_size=1, sleep=sleep)

        await scheduler.reorganize_all()
        assert "change" not in order

        await pending[0]
        assert order == ["pause", "pause", "pause", "change"]
        assert not scheduler.busy
