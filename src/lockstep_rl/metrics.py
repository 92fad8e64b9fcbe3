"""Console logging setup and a structured JSONL metrics log.

Console output goes through the standard ``logging`` module under the
``lockstep_rl`` logger.  :func:`setup_logging` installs a compact
formatter; :func:`log_step_progress` writes one line per progress report.

:class:`MetricsLogger` appends one JSON object per line, so fields may
vary between records::

    with MetricsLogger("runs/dqn/metrics.jsonl") as metrics:
        metrics.write({"iteration": 100, "loss": 0.42})
    records = read_metrics("runs/dqn/metrics.jsonl")
"""

from __future__ import annotations

import json
import logging
import math
import time
from pathlib import Path
from typing import IO, Any

import jax.numpy as jnp
import numpy as np

_LEVEL_ABBREV = {
    logging.DEBUG: "D",
    logging.INFO: "I",
    logging.WARNING: "W",
    logging.ERROR: "E",
    logging.CRITICAL: "C",
}


class _TrainFormatter(logging.Formatter):
    """``I 2026-10-17 14:30:22.123 [lockstep_rl.runner] message``"""

    def format(self, record: logging.LogRecord) -> str:
        level = _LEVEL_ABBREV.get(record.levelno, "?")
        stamp = self.formatTime(record, "%Y-%m-%d %H:%M:%S")
        return f"{level} {stamp}.{int(record.msecs):03d} [{record.name}] {record.getMessage()}"


def setup_logging(level: int = logging.INFO) -> None:
    """Route ``lockstep_rl`` log records to stderr with compact formatting.

    Calling it again replaces the previously installed handler.
    """
    logger = logging.getLogger("lockstep_rl")
    logger.setLevel(level)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setFormatter(_TrainFormatter())
    logger.addHandler(handler)
    logger.propagate = False


def log_step_progress(
    step: int,
    total_steps: int,
    metrics: dict[str, Any] | None = None,
    logger_name: str = "lockstep_rl",
) -> None:
    """Log ``iteration 500/1000 (50.0%) | loss=0.42 episodes=12``."""
    pct = 100.0 * step / total_steps if total_steps > 0 else 0.0
    parts = [f"iteration {step}/{total_steps} ({pct:.1f}%)"]
    if metrics:
        fields = []
        for key, value in metrics.items():
            if key in ("iteration", "wall_time"):
                continue
            value = _to_python(value)
            fields.append(f"{key}={value:.4g}" if isinstance(value, float) else f"{key}={value}")
        if fields:
            parts.append(" ".join(fields))
    logging.getLogger(logger_name).info(" | ".join(parts))


class MetricsLogger:
    """Append-only JSONL metrics file.

    Parent directories are created on construction.  Each record gets a
    ``wall_time`` (seconds since the logger was created) unless it
    already has one.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file: IO[str] = open(self._path, "a")  # noqa: SIM115
        self._start_time = time.monotonic()

    def write(self, record: dict[str, Any]) -> None:
        row = {key: _to_python(value) for key, value in record.items()}
        row.setdefault("wall_time", round(time.monotonic() - self._start_time, 3))
        self._file.write(json.dumps(row, default=str) + "\n")
        self._file.flush()

    def close(self) -> None:
        self._file.close()

    @property
    def path(self) -> Path:
        return self._path

    def __enter__(self) -> MetricsLogger:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"MetricsLogger({self._path})"


def read_metrics(path: str | Path) -> list[dict[str, Any]]:
    """Read every record of a JSONL metrics file (``[]`` if it is missing)."""
    p = Path(path)
    if not p.exists():
        return []
    return [json.loads(line) for line in p.read_text().splitlines() if line.strip()]


def _to_python(value: Any) -> Any:
    """Convert JAX/numpy scalars to plain Python numbers; NaN becomes None."""
    if isinstance(value, (jnp.ndarray, np.ndarray, np.integer, np.floating)):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    return value
