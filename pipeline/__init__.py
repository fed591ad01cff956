from .config import WorkerConfig
from .models import Job, QueryResult
from .queue_client import JobSource, ResultSink, build_session
from .worker import Worker

__all__ = ["WorkerConfig", "Job", "QueryResult", "JobSource", "ResultSink", "build_session", "Worker"]
