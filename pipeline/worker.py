"""
Worker — the job loop.

Flow
----
  1. fetch      — JobSource.fetch_next(); on failure log, sleep, start over
  2. decode     — base64 text -> raster bytes -> PIL image
  3. detect     — detector.analyze(image)
  4. render     — forensics.annotate.render(...)
  5. post       — ResultSink.post(job_id, result)

Any failure in steps 2-4 becomes a "Failed" result carrying the error
message, so every fetched job is answered by exactly one post.

Usage
-----
    worker = Worker(job_source, detector, result_sink)
    worker.run_forever()
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from PIL import Image

from forensics.annotate import render
from forensics.detector import BaseDetector
from forensics.utils import decode_base64, load_image

from .config import DEFAULT_FETCH_RETRY_DELAY
from .errors import DecodeError, DetectorError, EncodeError, FetchError, JobError
from .models import Job, QueryResult
from .queue_client import JobSource, ResultSink

logger = logging.getLogger(__name__)


class Worker:
    """
    Processes jobs one at a time, forever.

    ``sleep`` is injectable so the fetch backoff can be observed in tests
    without real delays.
    """

    def __init__(
        self,
        job_source: JobSource,
        detector: BaseDetector,
        result_sink: ResultSink,
        fetch_retry_delay: float = DEFAULT_FETCH_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.job_source = job_source
        self.detector = detector
        self.result_sink = result_sink
        self.fetch_retry_delay = fetch_retry_delay
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def run_forever(self) -> None:
        while True:
            self.run_once()

    def run_once(self) -> Optional[Job]:
        """
        One iteration: fetch a job, process it and post its result.

        Returns the processed job, or None when fetching failed and the
        backoff was slept instead.
        """
        try:
            job = self.job_source.fetch_next()
        except FetchError as exc:
            logger.error("Something failed: %s", exc)
            self._sleep(self.fetch_retry_delay)
            return None

        logger.info("Got job: %s (%s)", job.job_id, job.query_type)
        result = self.process(job)
        self.result_sink.post(job.job_id, result)
        return job

    # ------------------------------------------------------------------
    # Single job
    # ------------------------------------------------------------------

    def process(self, job: Job) -> QueryResult:
        """Analyse one job; never raises for job-level problems."""
        try:
            return self.analyze(job.job_id, job.encoded_image)
        except JobError as exc:
            logger.error("%s: %s", job.job_id, exc)
            return QueryResult.failed(str(exc))

    def analyze(self, job_id: str, encoded_image: str) -> QueryResult:
        """
        Decode, detect and render.

        Raises:
            DecodeError / DetectorError / EncodeError: for the failing stage.
        """
        image = self._decode(encoded_image)
        logger.info("%s: Loaded image from memory, processing...", job_id)

        try:
            outcome = self.detector.analyze(image)
        except Exception as exc:
            raise DetectorError(str(exc) or type(exc).__name__) from exc

        try:
            annotation = render(image, outcome, encoded_image)
        except Exception as exc:
            raise EncodeError(str(exc) or type(exc).__name__) from exc

        logger.info("%s: found %d forged regions", job_id, annotation.region_count)
        logger.info("%s: Finished processing image, result: %s", job_id, annotation.result)
        return QueryResult(
            enc_img_out=annotation.encoded_image,
            text=annotation.text,
            result=annotation.result,
        )

    @staticmethod
    def _decode(encoded_image: str) -> Image.Image:
        try:
            return load_image(decode_base64(encoded_image))
        except Exception as exc:
            raise DecodeError(str(exc) or type(exc).__name__) from exc
