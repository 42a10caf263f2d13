"""
Detached side-effect runner.

Fire-and-forget work (outbound email) runs in daemon threads so a slow or
unreachable mail server never holds a request open.  Each task has its own
error boundary: an exception is logged with the task name and dropped.

Tasks must not need the Flask app context.  Callers snapshot whatever
config they need before spawning.

Tests call ``wait_for_detached()`` to join everything spawned so far.
"""

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)

# In-memory registry of running tasks (name → Thread)
_running_tasks: dict[str, threading.Thread] = {}
_lock = threading.Lock()
_counter = 0


def _run_guarded(name: str, fn: Callable, args: tuple, kwargs: dict) -> None:
    try:
        fn(*args, **kwargs)
    except Exception:
        logger.warning("Detached task %s failed", name, exc_info=True)
    finally:
        with _lock:
            _running_tasks.pop(name, None)


def spawn(label: str, fn: Callable, *args, **kwargs) -> str:
    """Start ``fn(*args, **kwargs)`` in a daemon thread and return its task name."""
    global _counter
    with _lock:
        _counter += 1
        name = f"{label}-{_counter}"
        t = threading.Thread(
            target=_run_guarded,
            args=(name, fn, args, kwargs),
            name=name,
            daemon=True,
        )
        _running_tasks[name] = t
    t.start()
    return name


def pending_count() -> int:
    with _lock:
        return len(_running_tasks)


def wait_for_detached(timeout: float = 5.0) -> bool:
    """Join every running task. Returns False if any is still alive at the deadline."""
    deadline = time.monotonic() + timeout
    while True:
        with _lock:
            threads = list(_running_tasks.values())
        if not threads:
            return True
        for t in threads:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            t.join(remaining)
