"""Worker pool creation (the pool's execution engine is external)."""

import os
from concurrent.futures import Executor, ProcessPoolExecutor
from typing import Callable, Optional


WorkerPoolFactory = Callable[[int], Executor]


def default_worker_count(cpu_count: Optional[int] = None) -> int:
    """Leave one CPU for the main process, never fewer than one worker."""
    cpus = cpu_count if cpu_count is not None else (os.cpu_count() or 2)
    return max(1, cpus - 1)


def create_worker_pool(workers: Optional[int] = None) -> Executor:
    """Create the process pool handed to downstream build phases."""
    count = workers if workers is not None else default_worker_count()
    return ProcessPoolExecutor(max_workers=max(1, count))
