"""Agent interface for lockstep batched environments.

Agents split into two layers:

1. Pure functions grouped in a namespace class (e.g. ``DQN``) operating
   on an explicit state NamedTuple.  These are what gets jitted.

2. A stateful driver satisfying :class:`Agent` that owns the replay
   buffer and training counters and talks to a
   :class:`~lockstep_rl.env.base.BatchedEnvironment`.  Generic code such
   as :func:`lockstep_rl.runner.evaluate` only relies on this protocol.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol, runtime_checkable

import chex

from lockstep_rl.env.base import BatchedEnvironment
from lockstep_rl.types import Step, Trajectory

StepCallback = Callable[[Trajectory], None]


@runtime_checkable
class Agent(Protocol):
    """Structural contract for an interact-and-train agent."""

    def action(self, step: Step, *, explore: bool = True) -> chex.Array:
        """Choose one action per lane for ``step``.

        Args:
            step: Current batched step.
            explore: If False, act greedily.
        """
        ...

    def update(
        self,
        environment: BatchedEnvironment,
        *,
        max_steps: int | None = None,
        max_episodes: int | None = None,
        step_callbacks: Sequence[StepCallback] = (),
    ) -> float | None:
        """Interact with ``environment`` until a budget is hit, then train.

        Every recorded :class:`Trajectory` is passed to each callback.

        Returns:
            The last training loss, or ``None`` if no gradient step was
            possible yet.
        """
        ...
