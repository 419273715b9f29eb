"""Unit tests for ProgressTaskTracker."""

from __future__ import annotations

import asyncio

import pytest

from wateringctl_client.progress import ProgressTaskTracker


class TestTaskRegistry:
    """busy is true iff at least one task is outstanding."""

    @pytest.mark.asyncio
    async def test_interleaved_tasks(self) -> None:
        tracker = ProgressTaskTracker()

        a = tracker.start_task()
        b = tracker.start_task()
        assert tracker.busy
        assert tracker.outstanding == [a, b]

        tracker.finish_task(a)
        assert tracker.busy

        tracker.finish_task(b)
        assert not tracker.busy

    @pytest.mark.asyncio
    async def test_out_of_order_finish(self) -> None:
        tracker = ProgressTaskTracker()

        ids = [tracker.start_task() for _ in range(3)]
        tracker.finish_task(ids[2])
        tracker.finish_task(ids[0])

        assert tracker.outstanding == [ids[1]]

    @pytest.mark.asyncio
    async def test_unknown_ids_ignored(self) -> None:
        tracker = ProgressTaskTracker()
        task_id = tracker.start_task()

        tracker.finish_task(task_id)
        tracker.finish_task(task_id)
        tracker.finish_task(12345)
        tracker.finish_task(None)

        assert not tracker.busy

    @pytest.mark.asyncio
    async def test_ids_are_unique(self) -> None:
        tracker = ProgressTaskTracker()
        first = tracker.start_task()
        tracker.finish_task(first)

        assert tracker.start_task() != first

    @pytest.mark.asyncio
    async def test_task_timeout_finishes_task(self) -> None:
        tracker = ProgressTaskTracker()

        tracker.start_task(timeout=0.02)
        await asyncio.sleep(0.05)

        assert not tracker.busy


class TestDebounce:
    """Listeners see the busy flag only after it has been stable."""

    @pytest.mark.asyncio
    async def test_short_task_does_not_flicker(self) -> None:
        tracker = ProgressTaskTracker(debounce=0.03)
        changes: list[bool] = []
        tracker.add_busy_listener(changes.append)

        task_id = tracker.start_task()
        tracker.finish_task(task_id)
        await asyncio.sleep(0.06)

        assert changes == []
        assert not tracker.is_active

    @pytest.mark.asyncio
    async def test_long_task_toggles_once(self) -> None:
        tracker = ProgressTaskTracker(debounce=0.02)
        changes: list[bool] = []
        tracker.add_busy_listener(changes.append)

        task_id = tracker.start_task()
        await asyncio.sleep(0.05)
        assert tracker.is_active

        tracker.finish_task(task_id)
        await asyncio.sleep(0.05)

        assert changes == [True, False]

    @pytest.mark.asyncio
    async def test_unsubscribe(self) -> None:
        tracker = ProgressTaskTracker(debounce=0.01)
        changes: list[bool] = []
        remove = tracker.add_busy_listener(changes.append)
        remove()

        tracker.start_task()
        await asyncio.sleep(0.03)

        assert changes == []


class TestProgress:
    def test_clamped_and_deduplicated(self) -> None:
        tracker = ProgressTaskTracker()
        seen: list[int | None] = []
        tracker.add_progress_listener(seen.append)

        tracker.set_progress(50)
        tracker.set_progress(50)
        tracker.set_progress(140)
        tracker.set_progress(None)

        assert seen == [50, 100, None]
        assert tracker.progress is None
