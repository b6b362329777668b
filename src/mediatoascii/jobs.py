from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Literal, Mapping, Optional, Union

from mediatoascii.config import VideoConfig
from mediatoascii.errors import Cancelled
from mediatoascii.progress import CancellationToken, ProgressChannel
from mediatoascii.video import DEFAULT_WORKERS, VideoSummary, process_video

logger = logging.getLogger(__name__)

JobStatus = Literal["queued", "running", "succeeded", "failed", "cancelled"]


class VideoJob:
    """Handle on a video conversion running in the background.

    ``progress`` can be subscribed to or polled while the job runs;
    ``result()`` blocks until it ends and re-raises its failure.
    """

    def __init__(self, config: Union[VideoConfig, Mapping[str, Any]]):
        self.id = uuid.uuid4().hex
        self.config = config
        self.progress = ProgressChannel()
        self.status: JobStatus = "queued"
        self.error: Optional[BaseException] = None
        self._token = CancellationToken()
        self._future: Optional[Future] = None
        self._lock = threading.Lock()

    def _run(self, workers: int) -> VideoSummary:
        with self._lock:
            if self._token.cancelled:
                self.status = "cancelled"
                self.progress.close()
                raise Cancelled(f"Job {self.id} was cancelled before it started")
            self.status = "running"
        try:
            summary = process_video(self.config, self.progress, self._token, workers)
        except Cancelled as e:
            self.status = "cancelled"
            self.error = e
            raise
        except Exception as e:
            logger.error("Video job %s failed: %s", self.id, e)
            self.status = "failed"
            self.error = e
            raise
        self.status = "succeeded"
        return summary

    def cancel(self) -> None:
        with self._lock:
            self._token.cancel()

    @property
    def done(self) -> bool:
        return self.status in ("succeeded", "failed", "cancelled")

    def result(self, timeout: Optional[float] = None) -> VideoSummary:
        if self._future is None:
            raise RuntimeError(f"Job {self.id} was never submitted")
        return self._future.result(timeout=timeout)


_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


def get_executor() -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="mediatoascii-job")
        return _executor


def submit_video(config: Union[VideoConfig, Mapping[str, Any]], executor: Optional[ThreadPoolExecutor] = None,
                 workers: int = DEFAULT_WORKERS) -> VideoJob:
    """Start a video conversion off the caller's thread and return its handle."""
    job = VideoJob(config)
    job._future = (executor or get_executor()).submit(job._run, workers)
    logger.info("Submitted video job %s", job.id)
    return job
