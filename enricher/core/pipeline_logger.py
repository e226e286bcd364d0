"""Structured logging for resume() invocations.

One PipelineLogger is shared by the scheduler, the executor and the stages:
- an invocation frames everything (start/end, summary block, optional log file
  named after the invocation label)
- a stage runs for one entity; warnings and errors carry that entity
- group progress inside a stage is shown as ``[i/n]`` ticks
- extra context is appended as ``key=value`` pairs
"""

import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any


def _format_data(data: dict[str, Any]) -> str:
    """Render keyword context compactly: long strings cut, long lists counted."""
    parts = []
    for key, value in data.items():
        if isinstance(value, str) and len(value) > 50:
            value = value[:47] + "..."
        elif isinstance(value, list) and len(value) > 5:
            value = f"[{len(value)} items]"
        parts.append(f"{key}={value}")
    return ", ".join(parts)


def _with_data(message: str, data: dict[str, Any]) -> str:
    return f"{message} | {_format_data(data)}" if data else message


def _duration(seconds: float) -> str:
    minutes, secs = divmod(seconds, 60)
    if minutes >= 1:
        return f"{int(minutes)}m {secs:.0f}s"
    return f"{secs:.1f}s"


class ConsoleFormatter(logging.Formatter):
    """Message only; the logger methods add their own prefixes."""

    def format(self, record: logging.LogRecord) -> str:
        return record.getMessage()


class FileFormatter(logging.Formatter):
    """Millisecond timestamp and level for every line."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        return f"{stamp} [{record.levelname[:4]}] {record.getMessage()}"


class PipelineLogger:
    """Invocation- and stage-aware logger."""

    def __init__(self, name: str = "enricher", verbose: bool = False, log_dir: str | Path | None = None):
        """Initialize the pipeline logger.

        Args:
            name: Underlying ``logging`` logger name.
            verbose: Show DEBUG lines on the console.
            log_dir: Where per-invocation log files go. None disables them.
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)
        self.verbose = verbose
        self._log_dir = Path(log_dir) if log_dir else None
        self._log_file: Path | None = None
        self._file_handler: logging.FileHandler | None = None

        self._invocation_started: float | None = None
        self._stage = ""
        self._entity = ""
        self._stage_started: float | None = None
        self._ticks = 0
        self._tick_total = 0

        if not self.logger.handlers:
            console = logging.StreamHandler(sys.stdout)
            console.setFormatter(ConsoleFormatter())
            self.logger.addHandler(console)
        self.set_verbose(verbose)

    def set_verbose(self, verbose: bool):
        self.verbose = verbose
        level = logging.DEBUG if verbose else logging.INFO
        for handler in self.logger.handlers:
            if not isinstance(handler, logging.FileHandler):
                handler.setLevel(level)

    @staticmethod
    def _clock() -> str:
        return datetime.now().strftime("%H:%M:%S")

    # -- Invocation --

    def start_invocation(self, label: str, pending: int = 0):
        """Open the invocation frame and, if configured, its log file."""
        self._invocation_started = time.time()

        if self._log_dir:
            self._log_dir.mkdir(parents=True, exist_ok=True)
            self._log_file = self._log_dir / f"{label}_{datetime.now():%Y%m%d_%H%M%S}.log"
            self._file_handler = logging.FileHandler(self._log_file, encoding="utf-8")
            self._file_handler.setFormatter(FileFormatter())
            self._file_handler.setLevel(logging.DEBUG)
            self.logger.addHandler(self._file_handler)

        backlog = f" ({pending} entities pending)" if pending else ""
        self.logger.info(f"[{self._clock()}] Starting {label}{backlog}")

    def end_invocation(self, outcome: str, stats: dict | None = None):
        """Log the summary and outcome, then close the log file."""
        if stats:
            self.summary(stats)

        elapsed = _duration(time.time() - self._invocation_started) if self._invocation_started else "?"
        self.logger.info(f"Invocation {outcome.upper()} [{elapsed}]")
        if self._log_file:
            self.logger.info(f"Log: {self._log_file}")

        if self._file_handler:
            self.logger.removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None
        self._invocation_started = None

    def summary(self, stats: dict):
        """Indented block of stats; nested dicts one level deeper."""
        lines = ["SUMMARY"]
        for key, value in stats.items():
            if isinstance(value, dict):
                lines.append(f"  {key}:")
                lines.extend(f"    {k}: {v}" for k, v in value.items())
            else:
                lines.append(f"  {key}: {value}")
        self.logger.info("\n".join(lines))

    # -- Stage --

    def start_stage(self, stage: str, entity: str = "", model: str = ""):
        """Header line for one stage on one entity."""
        self._stage = stage
        self._entity = entity
        self._stage_started = time.time()
        self._ticks = 0
        self._tick_total = 0

        details = [d for d in (entity, model.split("/")[-1] if model else "") if d]
        header = stage.upper() + (f" ({', '.join(details)})" if details else "")
        self.logger.info(header)

    def stage_result(self, result: str, **metrics):
        """Closing line for the current stage with its metrics and duration."""
        parts = [result]
        if metrics:
            parts.append(", ".join(f"{k}={v}" for k, v in metrics.items()))
        if self._stage_started:
            parts.append(f"[{time.time() - self._stage_started:.1f}s]")
        self.logger.info(f"  Done: {' | '.join(parts)}")
        self._stage = ""
        self._entity = ""
        self._stage_started = None

    def set_tick_total(self, total: int):
        self._ticks = 0
        self._tick_total = total

    def tick(self, item: str = ""):
        """Progress line such as ``[2/3] metrics (12.3s)``. Silent without a total."""
        self._ticks += 1
        if not self._tick_total:
            return
        elapsed = time.time() - self._stage_started if self._stage_started else 0.0
        label = f" {item}" if item else ""
        self.logger.info(f"  [{self._ticks}/{self._tick_total}]{label} ({elapsed:.1f}s)")

    # -- Messages --

    def _context(self, data: dict[str, Any]) -> dict[str, Any]:
        if self._entity and "entity" not in data:
            return {**data, "entity": self._entity}
        return data

    def debug(self, message: str, **data):
        self.logger.debug(f"[{self._clock()}] {_with_data(message, data)}")

    def info(self, message: str, **data):
        self.logger.info(f"  {_with_data(message, data)}")

    def warning(self, message: str, **data):
        self.logger.warning(f"[{self._clock()}] WARN: {_with_data(message, self._context(data))}")

    def error(self, message: str, exc: Exception | None = None, **data):
        message = _with_data(message, self._context(data))
        if exc is not None:
            message = f"{message} | {type(exc).__name__}: {exc}"
        self.logger.error(f"[{self._clock()}] ERROR: {message}")

    def milestone(self, message: str, **data):
        """Always-visible progress line."""
        self.logger.info(f"  -> {_with_data(message, data)}")


_logger: PipelineLogger | None = None


def get_logger(verbose: bool = False, log_dir: str | Path | None = None) -> PipelineLogger:
    """The shared pipeline logger, created on first use.

    Later calls can switch verbose on and set a log directory if none was
    given yet; they never switch verbose off.
    """
    global _logger
    if _logger is None:
        _logger = PipelineLogger(verbose=verbose, log_dir=log_dir)
        return _logger
    if verbose and not _logger.verbose:
        _logger.set_verbose(True)
    if log_dir and _logger._log_dir is None:
        _logger._log_dir = Path(log_dir)
    return _logger


def reset_logger():
    """Drop the shared logger and close any open log file (tests)."""
    global _logger
    if _logger is not None:
        for handler in list(_logger.logger.handlers):
            if isinstance(handler, logging.FileHandler):
                _logger.logger.removeHandler(handler)
                handler.close()
    _logger = None
