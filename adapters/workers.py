"""
Thread pool for blocking Google Calendar client calls
googleapiclient is synchronous; calls run off the event loop with a bounded wait
"""

import asyncio
import functools
import logging
from typing import Any, Callable, Dict, Optional
from datetime import datetime, timezone
from concurrent.futures import ThreadPoolExecutor

logger = logging.getLogger(__name__)

class WorkerPool:
    """Runs blocking callables on a thread pool"""

    def __init__(self, max_workers: int = 5, timeout: Optional[float] = 30.0):
        self.max_workers = max_workers
        self.timeout = timeout
        self.thread_pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="calendar-api")

        # Statistics
        self.completed_tasks = 0
        self.failed_tasks = 0
        self.start_time = datetime.now(timezone.utc)

    async def execute_sync(
        self,
        func: Callable,
        *args,
        timeout: Optional[float] = None,
        **kwargs
    ) -> Any:
        """
        Execute a blocking function and wait for its result

        Args:
            func: Function to execute
            *args: Function arguments
            timeout: Maximum time to wait, defaults to the pool timeout
            **kwargs: Function keyword arguments

        Returns:
            Function result
        """
        loop = asyncio.get_running_loop()
        call = functools.partial(func, *args, **kwargs)

        try:
            result = await asyncio.wait_for(
                loop.run_in_executor(self.thread_pool, call),
                timeout if timeout is not None else self.timeout
            )
        except Exception:
            self.failed_tasks += 1
            raise

        self.completed_tasks += 1
        return result

    def get_stats(self) -> Dict[str, Any]:
        """Get worker pool statistics"""
        uptime = (datetime.now(timezone.utc) - self.start_time).total_seconds()

        return {
            "max_workers": self.max_workers,
            "completed_tasks": self.completed_tasks,
            "failed_tasks": self.failed_tasks,
            "uptime_seconds": uptime
        }

    def shutdown(self):
        """Stop accepting work and wait for running calls"""
        logger.info("Shutting down calendar API worker pool")
        self.thread_pool.shutdown(wait=True)
