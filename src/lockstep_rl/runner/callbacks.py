"""Step callbacks for ``Agent.update``."""

from __future__ import annotations

import numpy as np

from lockstep_rl.types import StepKind, StepType, Trajectory


class EpisodeReturnTracker:
    """Accumulate undiscounted per-lane returns and lengths.

    A lane's running total restarts on ``FIRST`` and is appended to
    :attr:`episode_returns` / :attr:`episode_lengths` on ``LAST`` (the
    ``LAST`` reward included).  Usable directly as a step callback.
    """

    def __init__(self, batch_size: int) -> None:
        self.batch_size = batch_size
        self.episode_returns: list[float] = []
        self.episode_lengths: list[int] = []
        self._running_return = np.zeros(batch_size, dtype=np.float64)
        self._running_length = np.zeros(batch_size, dtype=np.int64)

    def __call__(self, trajectory: Trajectory) -> None:
        self.observe(trajectory.step_kind, trajectory.reward)

    def observe(self, kind: StepKind, reward) -> None:
        kind = np.asarray(kind.value)
        reward = np.asarray(reward, dtype=np.float64)

        first = kind == int(StepType.FIRST)
        self._running_return = np.where(first, 0.0, self._running_return + reward)
        self._running_length = np.where(first, 0, self._running_length + 1)

        for lane in np.flatnonzero(kind == int(StepType.LAST)):
            self.episode_returns.append(float(self._running_return[lane]))
            self.episode_lengths.append(int(self._running_length[lane]))
            self._running_return[lane] = 0.0
            self._running_length[lane] = 0

    @property
    def num_episodes(self) -> int:
        return len(self.episode_returns)

    def __repr__(self) -> str:
        return f"EpisodeReturnTracker(batch_size={self.batch_size}, episodes={self.num_episodes})"
