"""
=============================================================================
WORKER THREAD POOL
=============================================================================

Runs accepted connections on a bounded set of worker threads.

    accept loop ──submit(conn)──►  ┌──────────── task queue ────────────┐
                                   │ [conn 7] [conn 8] [conn 9] ...     │
                                   └───────┬───────────┬────────────────┘
                                           ▼           ▼
                                      Worker-0     Worker-1  ...  Worker-N

    - min_workers threads start with the pool and never exit early.
    - When every worker is busy and tasks are waiting, one more worker is
      started, up to max_workers.
    - A full queue makes submit(block=False) return False; the server
      answers that connection with 503 itself.
    - Shutdown puts one None ("poison pill") per worker on the queue.

Every request is independent (each one stats and reads the filesystem on
its own), so workers share nothing but the handler, which is read-only.

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """A deferred call: func(*args, **kwargs)."""
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Pulls tasks off the shared queue until it receives None.

    A task that raises is logged and counted; the worker keeps running.
    """

    def __init__(self, task_queue: queue.Queue, worker_id: int, idle_timeout: float = 60.0):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        self.state = WorkerState.BUSY
        start_time = time.time()

        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
        except Exception as e:
            elapsed = time.time() - start_time
            logger.exception(f"Worker {self.worker_id} task failed after {elapsed:.3f}s: {e}")
            self.tasks_failed += 1
        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        self._shutdown.set()


class ThreadPool:
    """
    Bounded pool of Worker threads.

    Usage:
        pool = ThreadPool(min_workers=4, max_workers=16)
        pool.start()

        if not pool.submit(handle_connection, args=(conn,), block=False):
            reject(conn)

        pool.shutdown(wait=True)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        queue_size: int = 100,
        idle_timeout: float = 60.0
    ):
        """
        Args:
            min_workers: Threads started by start().
            max_workers: Upper bound on threads under load.
            queue_size: Maximum number of waiting tasks.
            idle_timeout: How often idle workers wake up to check for shutdown.
        """
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: queue.Queue = queue.Queue(maxsize=queue_size)

        self._workers: list[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    def start(self):
        """Start min_workers threads. Calling it twice does nothing."""
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")

        with self._lock:
            for _ in range(self.min_workers):
                self._spawn_worker()

        self._shutdown = False
        self._started = True

    def _spawn_worker(self) -> Worker:
        """Start one more worker. Caller holds self._lock."""
        worker = Worker(
            task_queue=self._task_queue,
            worker_id=self._next_worker_id,
            idle_timeout=self.idle_timeout,
        )
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None
    ) -> bool:
        """
        Queue func(*args, **kwargs) for a worker.

        Returns:
            True if queued, False if the queue was full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._started or self._shutdown:
            raise RuntimeError("Thread pool is not running")

        task = Task(func=func, args=args, kwargs=kwargs or {})

        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        """One more worker if all are busy and work is waiting."""
        with self._lock:
            total = len(self._workers)
            if total >= self.max_workers or self._task_queue.qsize() == 0:
                return
            if self.busy_workers == total:
                logger.debug(f"Scaling up: {total} -> {total + 1} workers")
                self._spawn_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop all workers.

        Args:
            wait: Let queued tasks finish first.
            timeout: Give up waiting for the queue after this many seconds.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait:
            deadline = time.time() + timeout if timeout else None
            while not self._task_queue.empty():
                if deadline and time.time() > deadline:
                    logger.warning("Shutdown timeout, abandoning queued tasks")
                    break
                time.sleep(0.05)

        for _ in self._workers:
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                break

        for worker in self._workers:
            worker.shutdown()
            worker.join(timeout=2.0)

        with self._lock:
            self._workers.clear()
        self._started = False

        logger.info("Thread pool shutdown complete")

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def idle_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.IDLE)

    @property
    def pending_tasks(self) -> int:
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        """Worker and task counts, for debug logging."""
        return {
            "workers": {
                "total": len(self._workers),
                "busy": self.busy_workers,
                "idle": self.idle_workers,
            },
            "tasks": {
                "queued": self.pending_tasks,
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
