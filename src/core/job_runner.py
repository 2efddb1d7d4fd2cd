"""Generation job runner: submit once, poll until terminal or out of time."""

import logging
import time
from typing import Callable, List

from tenacity import RetryError, Retrying, retry_if_result, stop_before_delay, wait_fixed

from src.core.base_backend import BaseBackend
from src.core.errors import UpstreamJobFailedError, UpstreamTimeoutError
from src.core.models import (
    BackendJobRequest,
    GeneratedImage,
    GenerationTuning,
    Job,
    JobStatus,
    PromptPair,
)

logger = logging.getLogger(__name__)


def _is_pending(job: Job) -> bool:
    return not job.status.is_terminal


class GenerationJobRunner:
    """Drives one backend job through its lifecycle.

    The job moves ``queued -> processing -> succeeded|failed|canceled``.
    Giving up after ``max_wait`` seconds is a local decision: the backend is
    not told to cancel, and the abandoned job is left to expire on its own.
    Nothing is retried; a failed job fails the run.

    Attributes:
        backend: Backend the job is submitted to
        poll_interval: Seconds between polls
        max_wait: Wall-clock ceiling in seconds, measured from submission;
            no poll starts at or after it
    """

    def __init__(
        self,
        backend: BaseBackend,
        poll_interval: float = 2.0,
        max_wait: float = 120.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the runner.

        Args:
            backend: Backend to submit jobs to
            poll_interval: Seconds between polls
            max_wait: Maximum seconds to wait for a terminal state
            sleep: Sleep function used between polls
        """
        self.backend = backend
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self._sleep = sleep

    def run(
        self,
        image_bytes: bytes,
        mime_type: str,
        prompts: PromptPair,
        tuning: GenerationTuning,
    ) -> GeneratedImage:
        """Submit a job, wait for it and return the generated image.

        Args:
            image_bytes: Source photo
            mime_type: MIME type of the source photo
            prompts: Composed prompts
            tuning: Backend tuning parameters

        Returns:
            GeneratedImage holding the raw output bytes

        Raises:
            UpstreamSubmitError: If the submission is rejected
            UpstreamJobFailedError: If the job fails, is canceled or has no output
            UpstreamTimeoutError: If the job is still running after ``max_wait``
        """
        request = BackendJobRequest(
            image_bytes=image_bytes,
            mime_type=mime_type,
            prompts=prompts,
            tuning=tuning,
        )

        job = self.backend.submit(request)
        logger.info(f"Submitted job {job.job_id} to {self.backend.name} ({job.status.value})")

        if _is_pending(job):
            job = self._wait_for_terminal(job)

        return self._collect(job)

    def _wait_for_terminal(self, submitted: Job) -> Job:
        # The first attempt replays the submitted job, so the first real poll
        # happens one interval after submission.
        pending: List[Job] = [submitted]

        def next_snapshot() -> Job:
            if pending:
                return pending.pop()
            job = self.backend.poll(submitted)
            logger.debug(f"Polled job {job.job_id}: {job.status.value}")
            return job

        retrying = Retrying(
            stop=stop_before_delay(self.max_wait),
            wait=wait_fixed(self.poll_interval),
            retry=retry_if_result(_is_pending),
            sleep=self._sleep,
        )

        try:
            return retrying(next_snapshot)
        except RetryError as e:
            last = e.last_attempt.result()
            logger.error(
                f"Job {submitted.job_id} on {self.backend.name} still {last.status.value} "
                f"after {self.max_wait:.0f}s, abandoning"
            )
            raise UpstreamTimeoutError(self.backend.name, submitted.job_id, self.max_wait) from e

    def _collect(self, job: Job) -> GeneratedImage:
        if job.status in (JobStatus.FAILED, JobStatus.CANCELED):
            message = job.error or f"job {job.status.value}"
            logger.error(f"Job {job.job_id} on {self.backend.name} {job.status.value}: {message}")
            raise UpstreamJobFailedError(self.backend.name, message, job_id=job.job_id)

        image_data = self.backend.fetch_output(job)
        logger.info(f"Job {job.job_id} succeeded ({len(image_data)} bytes)")

        source_url = job.output_url
        if source_url and source_url.startswith("data:"):
            source_url = None

        return GeneratedImage(
            image_data=image_data,
            backend=self.backend.name,
            job_id=job.job_id,
            source_url=source_url,
            metadata={"status": job.status.value},
        )
