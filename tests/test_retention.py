from __future__ import annotations

from taskvault.services.retention import RetentionSweeper


class FakeStore:
    def __init__(self, batches: list[list[str]]) -> None:
        self.batches = batches
        self.calls = 0

    def purge_expired(self) -> list[str]:
        self.calls += 1
        return self.batches.pop(0) if self.batches else []


def test_sweep_returns_purged_ids() -> None:
    store = FakeStore([["a", "b"]])

    assert RetentionSweeper(store).sweep() == ["a", "b"]
    assert RetentionSweeper(store).sweep() == []
    assert store.calls == 2


def test_sweep_has_no_gamification_effects(backend, repo, gamification, clock) -> None:
    task = repo.create_task("Archive me")
    repo.update_task(task.id, status="ARCHIVED")
    xp_before = gamification.get_stats().xp
    clock.advance(days=31)

    assert backend.sweeper.sweep() == [task.id]
    assert backend.sweeper.sweep() == []
    assert gamification.get_stats().xp == xp_before


def test_sweep_keeps_tasks_inside_retention_window(backend, repo, clock) -> None:
    task = repo.create_task("Recently archived")
    repo.update_task(task.id, status="ARCHIVED")
    clock.advance(days=29)

    assert backend.sweeper.sweep() == []
    assert repo.get_task(task.id) is not None
