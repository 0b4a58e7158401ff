import threading
import time

from jobfeed.services.worker import WorkerPool

URL = "https://jobicy.com/?feed=job_feed"


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_run_once_on_empty_queue(queue):
    seen = []
    assert WorkerPool(queue, seen.append).run_once() is False
    assert seen == []


def test_threads_process_every_task_once(queue):
    seen = []
    lock = threading.Lock()

    def handler(task):
        with lock:
            seen.append(task.import_run_id)
        queue.complete(task.task_id)

    for run_id in range(6):
        queue.enqueue(URL, run_id)

    pool = WorkerPool(queue, handler, concurrency=2, poll_interval=0.01)
    pool.start()
    try:
        assert pool.running
        assert wait_for(lambda: queue.status().completed == 6)
    finally:
        pool.stop(timeout=5)

    assert not pool.running
    assert sorted(seen) == list(range(6))


def test_handler_errors_do_not_kill_the_worker(queue, caplog):
    calls = []

    def handler(task):
        calls.append(task.import_run_id)
        if task.import_run_id == 0:
            raise RuntimeError("boom")
        queue.complete(task.task_id)

    failing = queue.enqueue(URL, 0)
    queue.enqueue(URL, 1)
    pool = WorkerPool(queue, handler, concurrency=1, poll_interval=0.01)
    pool.start()
    try:
        assert wait_for(lambda: queue.status().completed == 1 and "Worker error" in caplog.text)
    finally:
        pool.stop(timeout=5)
    assert sorted(calls) == [0, 1]
    assert "Worker error" in caplog.text
    # the failed task goes back to the queue with backoff instead of staying active
    task = queue.get(failing)
    assert task.state == "waiting"
    assert task.last_error == "RuntimeError: boom"


def test_run_once_reschedules_a_crashed_handler(queue, clock):
    def handler(task):
        raise OSError("disk full")

    task_id = queue.enqueue(URL, 7)
    pool = WorkerPool(queue, handler)
    for wait in (0, 5, 10):
        clock.advance(wait)
        assert pool.run_once()
        assert queue.status().active == 0

    task = queue.get(task_id)
    assert task.state == "failed" and task.attempts_made == 3
    assert not pool.run_once()


def test_start_is_idempotent(queue):
    pool = WorkerPool(queue, lambda task: None, concurrency=3, poll_interval=0.01)
    pool.start()
    threads = list(pool._threads)
    pool.start()
    try:
        assert pool._threads == threads
        assert sorted(t.name for t in threads) == ["import-worker-1", "import-worker-2", "import-worker-3"]
    finally:
        pool.stop(timeout=5)
