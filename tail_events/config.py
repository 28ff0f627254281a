"""Configuration: frozen dataclass built from an optional YAML file, env vars and CLI args.

YAML layout::

    parse:
      pattern: '^(?P<ip>\\S+) (?P<method>\\S+) (?P<uri>\\S+) (?P<status>\\d+)$'
      keys_to_ignore: [method]
      time_patterns: ['%Y-%m-%d %H:%M:%S']
    tail:
      from_beginning: false
      reopen: true
      poll_interval: 0.25
    file:
      output: output.jsonl
    queue:
      size: 1000
      overflow: block        # or drop_oldest
    logging:
      level: INFO
"""

import dataclasses
import logging
import os
import threading
from dataclasses import dataclass, field

import yaml

logger = logging.getLogger(__name__)

OVERFLOW_POLICIES = ("block", "drop_oldest")


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class TailConfig:
    from_beginning: bool = False
    reopen: bool = False
    poll_interval: float = 0.25


@dataclass(frozen=True)
class Config:
    input_file: str = ""
    pattern: str = ""
    keys_to_ignore: frozenset[str] = frozenset()
    time_patterns: tuple[str, ...] = ()
    tail: TailConfig = field(default_factory=TailConfig)
    output_file: str = "output.jsonl"
    queue_size: int = 1000
    overflow_policy: str = "block"
    log_level: str = "INFO"

    def __post_init__(self):
        if self.overflow_policy not in OVERFLOW_POLICIES:
            raise ValueError(
                f"overflow_policy must be one of {OVERFLOW_POLICIES}, got {self.overflow_policy!r}"
            )
        if self.queue_size < 1:
            raise ValueError(f"queue_size must be positive, got {self.queue_size}")


def load_yaml_config(path: str | None) -> dict:
    """Load a YAML config file. Returns empty dict if no path or file missing."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info("Loaded YAML config from %s", path)
        return data
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}


def config_from_dict(data: dict) -> Config:
    """Build Config from parsed YAML data; missing sections fall back to defaults."""
    parse = data.get("parse") or {}
    tail = data.get("tail") or {}
    out = data.get("file") or {}
    q = data.get("queue") or {}
    log = data.get("logging") or {}

    return Config(
        input_file=data.get("input_file", Config.input_file),
        pattern=parse.get("pattern") or "",
        keys_to_ignore=frozenset(parse.get("keys_to_ignore") or ()),
        time_patterns=tuple(parse.get("time_patterns") or ()),
        tail=TailConfig(
            from_beginning=_parse_bool(tail.get("from_beginning", TailConfig.from_beginning)),
            reopen=_parse_bool(tail.get("reopen", TailConfig.reopen)),
            poll_interval=float(tail.get("poll_interval", TailConfig.poll_interval)),
        ),
        output_file=out.get("output", Config.output_file),
        queue_size=int(q.get("size", Config.queue_size)),
        overflow_policy=q.get("overflow", Config.overflow_policy),
        log_level=str(log.get("level", Config.log_level)).upper(),
    )


def apply_env(config: Config) -> Config:
    """Overlay environment variables on top of *config*."""
    env = os.environ
    tail = config.tail
    if "POLL_INTERVAL" in env:
        tail = dataclasses.replace(tail, poll_interval=float(env["POLL_INTERVAL"]))
    return dataclasses.replace(
        config,
        input_file=env.get("INPUT_FILE", config.input_file),
        output_file=env.get("OUTPUT_FILE", config.output_file),
        queue_size=int(env.get("QUEUE_SIZE", str(config.queue_size))),
        overflow_policy=env.get("OVERFLOW_POLICY", config.overflow_policy),
        log_level=env.get("LOG_LEVEL", config.log_level).upper(),
        tail=tail,
    )


def apply_cli(config: Config, cli_args) -> Config:
    """Overlay parsed argparse values (highest priority). Unset flags are None/False."""
    changes: dict = {}
    if getattr(cli_args, "input", None):
        changes["input_file"] = cli_args.input
    if getattr(cli_args, "output", None):
        changes["output_file"] = cli_args.output
    if getattr(cli_args, "pattern", None):
        changes["pattern"] = cli_args.pattern
    if getattr(cli_args, "log_level", None):
        changes["log_level"] = cli_args.log_level.upper()

    tail = config.tail
    if getattr(cli_args, "from_beginning", False):
        tail = dataclasses.replace(tail, from_beginning=True)
    if getattr(cli_args, "reopen", False):
        tail = dataclasses.replace(tail, reopen=True)
    changes["tail"] = tail
    return dataclasses.replace(config, **changes)


def load_config(cli_args=None, yaml_path: str | None = None) -> Config:
    """Build Config from defaults <- YAML <- env vars <- CLI args."""
    config = config_from_dict(load_yaml_config(yaml_path))
    config = apply_env(config)
    if cli_args is not None:
        config = apply_cli(config, cli_args)
    return config


class LiveConfig:
    """Holds the current Config and swaps it atomically.

    Components that must observe changes at runtime (the sink's output path)
    read ``current`` each time instead of keeping their own copy.
    """

    def __init__(self, config: Config, cli_args=None, yaml_path: str | None = None):
        self._lock = threading.Lock()
        self._config = config
        self._cli_args = cli_args
        self._yaml_path = yaml_path

    @property
    def current(self) -> Config:
        with self._lock:
            return self._config

    def output_file(self) -> str:
        return self.current.output_file

    def update(self, **changes) -> Config:
        with self._lock:
            self._config = dataclasses.replace(self._config, **changes)
            return self._config

    def reload(self) -> Config:
        """Re-read the YAML file (plus env and CLI overlays) and swap it in."""
        config = load_config(self._cli_args, self._yaml_path)
        with self._lock:
            self._config = config
        logger.info("Configuration reloaded, output file: %s", config.output_file)
        return config
