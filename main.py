"""Entry point + CLI for the image forgery worker."""

from __future__ import annotations

import argparse
import base64
import json
import logging
import os
import sys
from pathlib import Path

from forensics import ZeroDetector
from pipeline import Job, JobSource, ResultSink, Worker, WorkerConfig, build_session
from pipeline.config import DEFAULT_LOG_LEVEL, ENV_LOG_LEVEL
from pipeline.errors import ConfigError

logger = logging.getLogger("forgery_worker")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def build_worker(config: WorkerConfig) -> Worker:
    session = build_session(config)
    source = JobSource(session, config.get_job_uri, config.auth_token, timeout=config.timeout)
    sink = ResultSink(session, config.post_result_uri, config.auth_token, timeout=config.timeout)
    detector = ZeroDetector(recompress_quality=config.recompress_quality)
    return Worker(source, detector, sink, fetch_retry_delay=config.fetch_retry_delay)


# -------------------- CLI commands --------------------

def cmd_run(args: argparse.Namespace) -> int:
    try:
        config = WorkerConfig.from_env(config_path=args.config)
    except ConfigError as exc:
        setup_logging(os.getenv(ENV_LOG_LEVEL) or DEFAULT_LOG_LEVEL)
        logger.error("Startup failed: %s", exc)
        return 1

    setup_logging(config.log_level)
    logger.info("Polling %s for jobs", config.get_job_uri)
    build_worker(config).run_forever()
    return 0


def cmd_analyze(args: argparse.Namespace) -> int:
    setup_logging(os.getenv(ENV_LOG_LEVEL) or DEFAULT_LOG_LEVEL)
    image_path = Path(args.image)
    try:
        raw = image_path.read_bytes()
    except OSError as exc:
        logger.error("Cannot read image %s: %s", image_path, exc)
        return 1
    encoded = base64.b64encode(raw).decode("ascii")

    worker = Worker(job_source=None, detector=ZeroDetector(), result_sink=None)
    result = worker.process(Job(job_id=image_path.stem, query_type="local", encoded_image=encoded))

    if args.out and result.enc_img_out:
        Path(args.out).write_bytes(base64.b64decode(result.enc_img_out))
    print(json.dumps({"result": result.result, "text": result.text}, indent=2, ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Image forgery detection worker")
    sub = parser.add_subparsers(dest="command")

    run_p = sub.add_parser("run", help="Poll the job queue and process jobs forever (default)")
    run_p.add_argument("--config", default=None, help="Tunables YAML file (default: configs/worker.yaml)")

    analyze_p = sub.add_parser("analyze", help="Analyse a local image without the queue")
    analyze_p.add_argument("image", help="Path to the image file")
    analyze_p.add_argument("--out", default=None, help="Where to write the returned image")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args(["run", *(argv or [])])

    commands = {
        "run": cmd_run,
        "analyze": cmd_analyze,
    }
    try:
        return commands[args.command](args)
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
