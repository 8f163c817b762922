import asyncio

from completion_monitor import make_progress, monitor_queue
from work_queue import WorkQueue


class RecordingProgress:
    def __init__(self, queue):
        self.queue = queue
        self.updates = []

    def update(self, task_id, completed):
        self.updates.append((completed, len(self.queue)))


def test_position_tracks_claimed_domains():
    queue = WorkQueue(["a.com", "b.com", "c.com"])
    progress = RecordingProgress(queue)

    async def claim_one(_interval):
        await queue.claim()

    polls = asyncio.run(monitor_queue(queue, progress, 0, initial=3, sleep=claim_one))

    assert polls == 4
    assert [completed for completed, _ in progress.updates] == [0, 1, 2, 3]
    for completed, remaining in progress.updates:
        assert completed == 3 - remaining


def test_full_position_only_when_empty():
    queue = WorkQueue(["a.com", "b.com"])
    progress = RecordingProgress(queue)

    async def claim_one(_interval):
        await queue.claim()

    asyncio.run(monitor_queue(queue, progress, 0, initial=2, sleep=claim_one))

    full = [remaining for completed, remaining in progress.updates if completed == 2]
    assert full == [0]


def test_empty_queue_finishes_on_first_poll():
    queue = WorkQueue()
    progress = RecordingProgress(queue)

    async def never(_interval):
        raise AssertionError("monitor should not sleep")

    assert asyncio.run(monitor_queue(queue, progress, 0, initial=0, sleep=never)) == 1
    assert progress.updates == [(0, 0)]


def test_stops_when_workers_are_gone():
    queue = WorkQueue(["a.com", "b.com"])
    progress = RecordingProgress(queue)

    polls = asyncio.run(monitor_queue(queue, progress, 0, initial=2, stop_early=lambda: True))

    assert polls == 1
    assert progress.updates == [(0, 2)]


def test_make_progress_has_a_bar():
    progress = make_progress()
    assert len(progress.columns) == 5
