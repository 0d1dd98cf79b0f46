import threading
import time
import pytest
from hbc.pipeline.scheduler import run_bounded


class ConcurrencyProbe:
    """Records the peak number of workers running at once."""

    def __init__(self, delay=0.02):
        self.delay = delay
        self.active = 0
        self.peak = 0
        self.started = []
        self._lock = threading.Lock()

    def __call__(self, item):
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
            self.started.append(item)
        time.sleep(self.delay)
        with self._lock:
            self.active -= 1
        return item * 10


def test_results_in_submission_order():
    probe = ConcurrencyProbe()
    assert run_bounded([1, 2, 3, 4, 5], probe, 2) == [10, 20, 30, 40, 50]


def test_limit_bounds_concurrency():
    probe = ConcurrencyProbe()
    run_bounded(list(range(7)), probe, 3)
    assert probe.peak <= 3


def test_chunks_are_awaited_before_the_next_one_starts():
    finished = []
    lock = threading.Lock()

    def worker(item):
        # the first chunk's slow item must finish before the second chunk starts
        if item == 0:
            time.sleep(0.1)
        with lock:
            if item >= 2:
                assert 0 in finished
            finished.append(item)
        return item

    assert run_bounded([0, 1, 2, 3], worker, 2) == [0, 1, 2, 3]


def test_failing_worker_does_not_cancel_siblings():
    ran = []

    def worker(item):
        if item == 2:
            raise RuntimeError("boom")
        ran.append(item)
        return item

    results = run_bounded([1, 2, 3], worker, 3)

    assert results == [1, None, 3]
    assert sorted(ran) == [1, 3]


@pytest.mark.parametrize("limit,expected_peak", [(0, 1), (-5, 1), (50, 10)])
def test_limit_is_clamped(limit, expected_peak):
    probe = ConcurrencyProbe(delay=0.05)
    run_bounded(list(range(12)), probe, limit)
    assert probe.peak <= expected_peak


def test_empty_input():
    assert run_bounded([], lambda item: item, 3) == []


def test_shutdown_stops_scheduling_new_chunks():
    shutdown_event = threading.Event()

    def worker(item):
        shutdown_event.set()
        return item

    results = run_bounded([1, 2, 3, 4], worker, 2, shutdown_event)

    assert results == [1, 2]


def test_keyboard_interrupt_sets_shutdown_and_propagates():
    shutdown_event = threading.Event()

    def worker(item):
        if item == 1:
            raise KeyboardInterrupt
        return item

    with pytest.raises(KeyboardInterrupt):
        run_bounded([1, 2], worker, 1, shutdown_event)
    assert shutdown_event.is_set()
