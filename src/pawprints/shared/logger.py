from __future__ import annotations

import logging
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TextIO


class RunLogger:
    """Console + file logger for long-running batch jobs (corpus builds).

    - console : INFO+ to stderr, human-readable
    - log_file: every line at or above DEBUG, persisted

    Both sinks write simultaneously; only the console is level-gated.
    """

    LEVELS: dict[str, int] = {
        "DEBUG":  0,
        "INFO":   1,
        "PROG":   1,
        "METRIC": 1,
        "WARN":   2,
        "ERROR":  3,
    }

    def __init__(
        self,
        log_file: str | Path | None = None,
        console: bool = True,
        min_level: str = "INFO",
        stream: TextIO | None = None,
    ) -> None:
        self.console = console
        self.min_level = self.LEVELS.get(min_level.upper(), 1)
        self._stream = stream
        self._file: TextIO | None = None
        self.log_path: Path | None = None
        self._timings: dict[str, float] = {}
        self._counters: dict[str, Any] = {}
        self._start = time.perf_counter()

        if log_file:
            self.log_path = Path(log_file)
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.log_path, "w", encoding="utf-8", buffering=1)
            self._raw("=" * 80)
            self._raw(f"Pawprints Log: {time.strftime('%Y-%m-%d %H:%M:%S')}")
            self._raw("=" * 80)
            self._raw("")

    def _raw(self, line: str) -> None:
        if self._file:
            self._file.write(line + "\n")

    def _print(self, line: str) -> None:
        print(line, file=self._stream or sys.stderr, flush=True)

    def _emit(self, level: str, msg: str) -> None:
        elapsed = time.perf_counter() - self._start
        line = f"[{time.strftime('%H:%M:%S')}] [{elapsed:7.2f}s] {level:6} | {msg}"

        if self.console and self.LEVELS.get(level, 1) >= self.min_level:
            self._print(line)
        self._raw(line)

    def debug(self, msg: str) -> None:
        self._emit("DEBUG", msg)

    def info(self, msg: str) -> None:
        self._emit("INFO", msg)

    def warn(self, msg: str) -> None:
        self._emit("WARN", msg)

    def error(self, msg: str) -> None:
        self._emit("ERROR", msg)

    def section(self, title: str) -> None:
        sep = "=" * 80
        for line in ("", sep, f"  {title}", sep):
            if self.console:
                self._print(line)
            self._raw(line)

    def progress(self, current: int, total: int, label: str = "") -> None:
        pct = (current / total * 100) if total else 0
        filled = int(20 * current / total) if total else 0
        bar = "█" * filled + "░" * (20 - filled)
        msg = f"[{current:>4}/{total}] {bar} {pct:5.1f}%"
        if label:
            msg += f"  {label}"
        self._emit("PROG", msg)

    def metric(self, name: str, value: Any, unit: str = "") -> None:
        self._counters[name] = value
        vstr = f"{value:.3f}" if isinstance(value, float) else str(value)
        if unit:
            vstr += f" {unit}"
        self._emit("METRIC", f"{name} = {vstr}")

    @contextmanager
    def timer(self, name: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - start
            self._timings[name] = elapsed
            self._emit("METRIC", f"timer:{name} = {elapsed:.3f}s")

    def summary(self) -> None:
        self.section("RUN SUMMARY")
        self.info(f"Total wall time: {time.perf_counter() - self._start:.2f}s")
        for name, value in self._counters.items():
            self.info(f"  {name:<30} {value}")
        for name, elapsed in sorted(self._timings.items(), key=lambda x: -x[1]):
            self.info(f"  {name:<30} {elapsed:>8.3f}s")
        if self.log_path:
            self.info(f"Log file: {self.log_path}")

    def install_stdlib_bridge(self, root_logger: str = "pawprints", level: int = logging.INFO) -> None:
        """Forward stdlib ``logging`` records under ``root_logger`` to this logger."""
        handler = _BridgeHandler(self)
        handler.setLevel(level)
        root = logging.getLogger(root_logger)
        root.setLevel(min(root.level or logging.DEBUG, level))
        if not any(isinstance(h, _BridgeHandler) for h in root.handlers):
            root.addHandler(handler)

    def remove_stdlib_bridge(self, root_logger: str = "pawprints") -> None:
        root = logging.getLogger(root_logger)
        for handler in [h for h in root.handlers if isinstance(h, _BridgeHandler)]:
            root.removeHandler(handler)

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    def __enter__(self) -> "RunLogger":
        return self

    def __exit__(self, *_: object) -> None:
        self.remove_stdlib_bridge()
        self.close()


class _BridgeHandler(logging.Handler):
    _MAP = {
        logging.DEBUG:    "debug",
        logging.INFO:     "info",
        logging.WARNING:  "warn",
        logging.ERROR:    "error",
        logging.CRITICAL: "error",
    }

    def __init__(self, logger: RunLogger) -> None:
        super().__init__()
        self._run_logger = logger

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            getattr(self._run_logger, self._MAP.get(record.levelno, "info"))(msg)
        except Exception:
            self.handleError(record)
