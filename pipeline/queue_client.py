"""
HTTP side of the worker: JobSource pulls jobs, ResultSink posts results.

Both share one ``requests.Session`` built by ``build_session`` that trusts
the configured CA bundle.  Every request carries the ``Module-Auth-Token``
header.
"""

from __future__ import annotations

import logging
from typing import Tuple, Union

import requests

from .config import WorkerConfig
from .errors import DeserializationError, TransportError
from .models import Job, QueryResult

logger = logging.getLogger(__name__)

AUTH_HEADER = "Module-Auth-Token"
RESULT_CONTENT_TYPE = "application/octet-stream"

Timeout = Union[float, Tuple[float, float], None]


def build_session(config: WorkerConfig) -> requests.Session:
    """Session verifying TLS against the configured CA bundle."""
    session = requests.Session()
    session.verify = str(config.ca_path)
    return session


class JobSource:
    """
    Blocking long-poll client for the job endpoint.

    Usage:
        source = JobSource(session, config.get_job_uri, config.auth_token)
        job = source.fetch_next()       # blocks until a job is handed out
    """

    def __init__(
        self,
        session: requests.Session,
        get_job_uri: str,
        auth_token: str,
        timeout: Timeout = None,
    ):
        self.session = session
        self.get_job_uri = get_job_uri
        self.auth_token = auth_token
        self.timeout = timeout

    def fetch_next(self) -> Job:
        """
        Poll until the queue hands out a job.

        204 (no job ready) and unexpected status codes are logged and the
        request is re-issued at once.

        Raises:
            TransportError:       connection failure, timeout, etc.
            DeserializationError: a 200 response whose body is not a job.
        """
        while True:
            try:
                response = self.session.get(
                    self.get_job_uri,
                    headers={AUTH_HEADER: self.auth_token},
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                raise TransportError(f"Failed to fetch job from {self.get_job_uri}: {exc}") from exc

            status = response.status_code
            if status == 200:
                return self._parse_job(response)
            if status == 204:
                logger.debug("No job found, trying again!")
            else:
                logger.error("Unexpected status code: %s", status)

    @staticmethod
    def _parse_job(response: requests.Response) -> Job:
        try:
            payload = response.json()
        except ValueError as exc:
            raise DeserializationError(f"Job response is not valid JSON: {exc}") from exc
        try:
            return Job.from_payload(payload)
        except (KeyError, TypeError) as exc:
            raise DeserializationError(f"Malformed job response: {exc!r}") from exc


class ResultSink:
    """
    Fire-and-forget poster of job results.

    ``post`` never raises: a non-204 answer or a transport failure is logged
    and the result is dropped.
    """

    def __init__(
        self,
        session: requests.Session,
        post_result_uri: str,
        auth_token: str,
        timeout: Timeout = None,
    ):
        self.session = session
        self.post_result_uri = post_result_uri.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout

    def result_url(self, job_id: str) -> str:
        return f"{self.post_result_uri}/{job_id}"

    def post(self, job_id: str, result: QueryResult) -> bool:
        """Send *result* for *job_id*; returns True when the queue answered 204."""
        try:
            response = self.session.post(
                self.result_url(job_id),
                headers={
                    AUTH_HEADER: self.auth_token,
                    "Content-Type": RESULT_CONTENT_TYPE,
                },
                data=result.to_json().encode("utf-8"),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Error posting result: %s", exc)
            return False

        if response.status_code != 204:
            logger.error("Failed to post result: %s", response.status_code)
            return False

        logger.info("%s: Posted result", job_id)
        return True
