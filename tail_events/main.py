"""tail-events entry point: follow a log file and write typed JSON events."""

import argparse
import logging
import queue
import signal
import sys
import time

import yaml

from tail_events.config import LiveConfig, load_config
from tail_events.metrics import Metrics
from tail_events.pipeline import PipelineWorker
from tail_events.sink import SinkWorker

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [TAIL-EVENTS] %(levelname)s %(message)s"

_running = True


def _signal_handler(sig, frame):
    global _running
    logger.info("Shutdown signal received, stopping...")
    _running = False


def _reload(live: LiveConfig):
    try:
        live.reload()
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.warning("Config reload failed, keeping current settings: %s", e)


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Tail a log file and append each parsed line as a typed JSON event",
    )
    parser.add_argument("--input", "-i", help="Path of the log file to follow")
    parser.add_argument("--config", "-c", default=None, help="Path to YAML config file")
    parser.add_argument("--output", "-o", default=None,
                        help="Output JSON-lines file (default: output.jsonl)")
    parser.add_argument("--pattern", default=None,
                        help="Regex with named groups; overrides parse.pattern")
    parser.add_argument("--from-beginning", action="store_true",
                        help="Read the file from the start instead of the end")
    parser.add_argument("--reopen", action="store_true",
                        help="Reopen the file when it is rotated or recreated")
    parser.add_argument("--metrics-file", default=None,
                        help="Write counters as JSON to this path on shutdown")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ...")
    return parser


def main(argv: list[str] | None = None) -> int:
    global _running
    _running = True

    parser = build_cli_parser()
    args = parser.parse_args(argv)

    config = load_config(args, args.config)
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
    if not config.input_file:
        parser.error("an input file is required (--input, INPUT_FILE or input_file in the config)")

    live = LiveConfig(config, cli_args=args, yaml_path=args.config)

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, lambda sig, frame: _reload(live))

    logger.info("Config: input=%s, output=%s, from_beginning=%s, reopen=%s, queue=%d/%s",
                config.input_file, config.output_file, config.tail.from_beginning,
                config.tail.reopen, config.queue_size, config.overflow_policy)

    metrics = Metrics()
    q: queue.Queue = queue.Queue(maxsize=config.queue_size)
    sink = SinkWorker(q, live.output_file, metrics)
    worker = PipelineWorker(config, q, metrics=metrics)

    sink.init()
    sink.start()
    worker.init()
    worker.start()

    try:
        while _running and worker.is_alive():
            time.sleep(1)
    except KeyboardInterrupt:
        pass

    logger.info("Shutting down...")
    worker.stop()
    worker.join(timeout=5)
    sink.stop()

    counters = metrics.snapshot()["counters"]
    logger.info("Stats: %d lines read, %d unmatched, %d events written, %d failed writes",
                counters.get("lines_read", 0), counters.get("lines_unmatched", 0),
                counters.get("events_written", 0),
                counters.get("write_failures", 0) + counters.get("serialize_failures", 0))
    if args.metrics_file:
        metrics.save(args.metrics_file)

    if worker.source_error is not None:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
