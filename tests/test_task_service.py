from __future__ import annotations

from pathlib import Path

import pytest

from taskvault.domain.enums import ChangeReason, TaskStatus, TimelineEntryType
from taskvault.domain.errors import NotFoundError, ValidationError


@pytest.fixture()
def changes(service):
    received = []
    service.notifier.subscribe(received.append)
    return received


def _reasons(changes) -> list[ChangeReason]:
    return [change.reason for change in changes]


def test_create_and_update_emit_notifications(service, changes) -> None:
    task = service.create_task({"title": "Plan trip", "priority": "HIGH"})
    service.update_task(task.id, {"status": "WAITING"})

    assert _reasons(changes) == [ChangeReason.TASK_CREATED, ChangeReason.TASK_UPDATED]
    assert all(change.task_id == task.id for change in changes)


def test_update_rejects_unknown_fields(service, changes) -> None:
    task = service.create_task({"title": "Strict"})

    with pytest.raises(ValidationError):
        service.update_task(task.id, {"due_date": "tomorrow"})
    assert _reasons(changes) == [ChangeReason.TASK_CREATED]


def test_update_accepts_bridge_aliases(service, clock) -> None:
    task = service.create_task({"title": "Aliases"})
    clock.advance(days=2)

    updated = service.update_task(
        task.id, {"id": task.id, "pinnedSummary": "ctx", "updateTouched": False}
    )

    assert updated.pinned_summary == "ctx"
    assert updated.last_touched_at == task.last_touched_at


def test_handle_dispatches_commands(service) -> None:
    task = service.handle("createTask", {"title": "Via bridge", "priority": "LOW"})
    service.handle("addTimelineEntry", {"taskId": task.id, "type": "NOTE", "content": "hello"})
    service.handle("updateTask", {"id": task.id, "status": "DONE", "updateTouched": True})

    detail = service.handle("getTaskById", {"id": task.id})
    assert detail.task.status == TaskStatus.DONE
    assert [entry.content for entry in detail.timeline] == ["hello"]
    assert [item.id for item in service.handle("searchTasks", {"query": "hello"})] == [task.id]
    assert service.handle("getGamificationStats").xp == 5 + 2 + 20


def test_handle_rejects_bad_requests(service) -> None:
    with pytest.raises(ValidationError):
        service.handle("dropDatabase")
    with pytest.raises(ValidationError):
        service.handle("getTaskById", {})


def test_handle_rejects_non_boolean_touch(service, clock) -> None:
    task = service.create_task({"title": "Strict flags"})
    clock.advance(days=1)

    with pytest.raises(ValidationError):
        service.handle(
            "addTimelineEntry", {"taskId": task.id, "type": "NOTE", "content": "x", "touch": 0}
        )
    with pytest.raises(ValidationError):
        service.handle("updateTask", {"id": task.id, "status": "WAITING", "updateTouched": "false"})

    detail = service.get_task_by_id(task.id)
    assert detail.timeline == []
    assert detail.task.last_touched_at == task.last_touched_at


def test_attach_file_records_entry(service, storage, gamification, changes) -> None:
    task = service.create_task({"title": "Docs"})

    relative = service.attach_file(task.id, "/home/me/report.pdf")

    assert relative == f"{task.id}/report.pdf"
    timeline = service.get_task_by_id(task.id).timeline
    assert [(e.type, e.content) for e in timeline] == [(TimelineEntryType.FILE, relative)]
    assert gamification.get_stats().xp == 5 + 2
    assert _reasons(changes)[-1] == ChangeReason.FILE_ATTACHED


def test_attach_file_to_missing_task(service, storage) -> None:
    with pytest.raises(NotFoundError):
        service.attach_file("missing", "/tmp/a.txt")
    assert storage.stored == []


def test_paste_image_records_entry(service, changes) -> None:
    task = service.create_task({"title": "Screens"})

    relative = service.paste_image(task.id, b"\x89PNG")

    item = service.list_tasks()[0]
    assert item.image_count == 1
    assert item.last_entry_content == relative
    assert _reasons(changes)[-1] == ChangeReason.IMAGE_PASTED


def test_attachment_path_resolves_through_storage(service) -> None:
    assert service.get_attachment_path("abc/file.txt") == Path("/vault/abc/file.txt")


def test_timeline_edit_and_delete_notify_owner(service, changes) -> None:
    task = service.create_task({"title": "Journal"})
    entry = service.add_timeline_entry(task.id, "NOTE", "draft")

    service.edit_timeline_entry(entry.id, "final")
    assert service.delete_timeline_entry(entry.id) is True
    assert service.delete_timeline_entry(entry.id) is False

    assert _reasons(changes)[-3:] == [
        ChangeReason.TIMELINE_ENTRY_ADDED,
        ChangeReason.TIMELINE_ENTRY_UPDATED,
        ChangeReason.TIMELINE_ENTRY_DELETED,
    ]
    assert changes[-1].task_id == task.id


def test_delete_task_reports_incomplete(service, storage, gamification, changes) -> None:
    task = service.create_task({"title": "Dropped"})

    result = service.delete_task(task.id)

    assert result.success and result.was_incomplete
    assert storage.deleted_dirs == [task.id]
    assert gamification.get_stats().xp == 0
    assert _reasons(changes)[-1] == ChangeReason.TASK_DELETED


def test_failing_listener_does_not_break_commands(service) -> None:
    def broken(_change) -> None:
        raise RuntimeError("ui went away")

    service.notifier.subscribe(broken)

    task = service.create_task({"title": "Resilient"})
    assert service.get_task_by_id(task.id) is not None
