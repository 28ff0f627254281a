"""PipelineWorker: tails the input file, parses each line and publishes the events."""

import logging
import queue
import threading

from tail_events.config import Config
from tail_events.errors import NoMatch, SourceOpenError
from tail_events.metrics import Metrics
from tail_events.parser import LineParser
from tail_events.publisher import EventPublisher
from tail_events.tailer import FileTailer

logger = logging.getLogger(__name__)


class PipelineWorker(threading.Thread):
    """Reads lines strictly in file order and puts each parsed event on the queue.

    Lines that do not match the pattern are dropped and counted. Stopping this
    worker never stops the sink consuming the queue.
    """

    def __init__(self, config: Config, out_queue: queue.Queue, input_file: str | None = None,
                 metrics: Metrics | None = None):
        super().__init__(daemon=True, name="pipeline-worker")
        self._config = config
        self._input_file = input_file or config.input_file
        self._metrics = metrics or Metrics()
        self._stop_event = threading.Event()
        self._parser = LineParser(config, self._metrics)
        self._publisher = EventPublisher(out_queue, config.overflow_policy,
                                         self._metrics, self._stop_event)
        self._tailer = FileTailer(
            self._input_file,
            from_beginning=config.tail.from_beginning,
            reopen=config.tail.reopen,
            poll_interval=config.tail.poll_interval,
        )
        self.source_error: SourceOpenError | None = None
        # Set once the input file is open and positioned
        self.tailing = threading.Event()

    @property
    def parser(self) -> LineParser:
        return self._parser

    @property
    def compile_error(self):
        return self._parser.compile_error

    def init(self) -> bool:
        """Compile the line pattern. Failure is logged once; every line then goes unmatched."""
        return self._parser.init()

    def run(self):
        logger.info("Starting worker process for %s", self._input_file)
        if self._stop_event.is_set():
            return
        if not self._parser.ready and self._parser.compile_error is None:
            self._parser.init()

        try:
            self._tailer.open()
        except SourceOpenError as e:
            self.source_error = e
            self._metrics.increment("source_open_failures")
            logger.warning("Input file could not be opened: %s; error: %s", self._input_file, e.reason)
            return

        self.tailing.set()
        lines = self._tailer.lines()
        try:
            for line in lines:
                if self._stop_event.is_set():
                    break
                self._process(line)
        finally:
            lines.close()
        logger.info("Stopping worker process")

    def _process(self, line: str):
        self._metrics.increment("lines_read")
        logger.debug("Processing line %s", line)
        try:
            event = self._parser.parse(line)
        except NoMatch:
            self._metrics.increment("lines_unmatched")
            logger.debug("Line %s did not match pattern.", line)
            return
        if self._publisher.publish(event):
            self._metrics.increment("events_published")

    def stop(self):
        """Stop tailing. Does *not* stop the SinkWorker."""
        self._stop_event.set()
        self._tailer.stop()
