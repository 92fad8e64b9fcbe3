"""Per-lane uniform replay buffer for batched environments.

Storage is numpy (mutation in place, O(1) writes); sampled windows come
back as jax arrays ready for a jitted update step.  The buffer lives
outside ``jax.jit``::

    buffer = UniformReplayBuffer(batch_size=env.batch_size, max_length=1_000)
    for tick in range(n_ticks):
        ...
        buffer.record(trajectory)            # one entry per lane
    if buffer.can_sample(step_count=9):
        window = buffer.sample_batch(batch_size=32, step_count=9)
        # window.observation.shape == (9, 32, *obs_shape)

Each lane is its own ring of ``max_length`` slots.  Storage leaves are
laid out as ``(max_length, batch_size, ...)`` and allocated lazily from
the first recorded trajectory, so any pytree of observations / agent
states is supported.

The buffer is single-writer / single-reader and does no locking.
"""

from __future__ import annotations

import logging
from typing import Any

import jax
import jax.numpy as jnp
import numpy as np

from lockstep_rl.types import Trajectory

logger = logging.getLogger(__name__)


class InsufficientDataError(RuntimeError):
    """Raised when no lane holds enough entries for the requested window."""


class UniformReplayBuffer:
    """Bounded per-lane ring store with uniform windowed sampling.

    Args:
        batch_size: Number of lanes (independent rings).
        max_length: Capacity of each lane.
        seed: Seed for the numpy generator used by :meth:`sample_batch`.
    """

    def __init__(self, batch_size: int, max_length: int, seed: int = 0) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if max_length <= 0:
            raise ValueError(f"max_length must be positive, got {max_length}")
        self.batch_size = batch_size
        self.max_length = max_length

        # Next write slot and number of valid entries, per lane.
        self._cursor = np.zeros(batch_size, dtype=np.int64)
        self._size = np.zeros(batch_size, dtype=np.int64)
        self._storage: Trajectory | None = None
        self._rng = np.random.default_rng(seed)

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def record(self, trajectory: Trajectory, lanes: Any = None) -> None:
        """Append one trajectory entry to every lane (or the masked lanes).

        Args:
            trajectory: Batched trajectory; every leaf has a leading
                ``batch_size`` axis.
            lanes: Optional boolean mask of shape ``(batch_size,)``.  Only
                the selected lanes are written and advance their cursor.
        """
        host = jax.tree.map(np.asarray, trajectory)
        if self._storage is None:
            self._storage = self._allocate(host)

        if lanes is None:
            lane_idx = np.arange(self.batch_size)
        else:
            mask = np.asarray(lanes, dtype=np.bool_)
            if mask.shape != (self.batch_size,):
                raise ValueError(
                    f"lanes mask must have shape ({self.batch_size},), got {mask.shape}"
                )
            lane_idx = np.flatnonzero(mask)
        slots = self._cursor[lane_idx]

        def _write(store: np.ndarray, leaf: np.ndarray) -> None:
            if leaf.shape[:1] != (self.batch_size,):
                raise ValueError(
                    f"trajectory leaves need a leading lane axis of size "
                    f"{self.batch_size}, got shape {leaf.shape}"
                )
            store[slots, lane_idx] = leaf[lane_idx]

        jax.tree.map(_write, self._storage, host)

        self._cursor[lane_idx] = (slots + 1) % self.max_length
        self._size[lane_idx] = np.minimum(self._size[lane_idx] + 1, self.max_length)

    def _allocate(self, example: Trajectory) -> Trajectory:
        logger.debug(
            "Allocating replay storage: %d lanes x %d steps",
            self.batch_size,
            self.max_length,
        )
        return jax.tree.map(
            lambda leaf: np.zeros((self.max_length, *leaf.shape), dtype=leaf.dtype),
            example,
        )

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def can_sample(self, step_count: int) -> bool:
        """Whether at least one lane holds ``step_count`` entries."""
        return bool(np.any(self._size >= step_count))

    def sample_batch(self, batch_size: int, step_count: int) -> Trajectory:
        """Sample ``batch_size`` contiguous windows of ``step_count`` entries.

        (lane, offset) pairs are drawn uniformly with replacement over all
        complete windows of all lanes.  Each window is returned in
        chronological order (index 0 is the earliest entry) and windows
        are stacked on axis 1, giving time-major leaves of shape
        ``(step_count, batch_size, ...)``.

        Raises:
            ValueError: If ``step_count`` is not in ``[1, max_length]``.
            InsufficientDataError: If no lane holds ``step_count`` entries.
        """
        if not 0 < step_count <= self.max_length:
            raise ValueError(
                f"step_count must be in [1, {self.max_length}], got {step_count}"
            )
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if self._storage is None or not self.can_sample(step_count):
            raise InsufficientDataError(
                f"no lane holds {step_count} entries yet "
                f"(largest lane holds {int(self._size.max())})"
            )

        # Number of complete windows each lane can serve.
        windows = np.maximum(self._size - step_count + 1, 0)
        bounds = np.cumsum(windows)
        draws = self._rng.integers(0, bounds[-1], size=batch_size)
        lanes = np.searchsorted(bounds, draws, side="right")
        offsets = draws - (bounds[lanes] - windows[lanes])

        # Chronological index i of lane l lives in slot (oldest_l + i) % max_length.
        oldest = (self._cursor - self._size) % self.max_length
        steps = np.arange(step_count)
        slots = (oldest[lanes][None, :] + offsets[None, :] + steps[:, None]) % self.max_length

        return jax.tree.map(
            lambda store: jnp.asarray(store[slots, lanes[None, :]]),
            self._storage,
        )

    @property
    def lane_sizes(self) -> np.ndarray:
        """Number of valid entries held by each lane."""
        return self._size.copy()

    def __len__(self) -> int:
        return int(self._size.sum())

    def __repr__(self) -> str:
        return (
            f"UniformReplayBuffer(batch_size={self.batch_size}, "
            f"max_length={self.max_length}, size={len(self)})"
        )
