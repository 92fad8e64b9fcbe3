"""Core type definitions for lockstep_rl.

Every container is a NamedTuple, so it is a JAX pytree for free and can
cross ``jax.jit`` / ``jax.vmap`` boundaries unchanged.  All batched
containers carry the lane dimension last among the leading axes:
``(batch_size, ...)`` for a single tick and ``(T, batch_size, ...)`` for a
window of ticks.
"""

from __future__ import annotations

import enum
from typing import Any, NamedTuple, TypeAlias

import chex
import jax.numpy as jnp

# ---------------------------------------------------------------------------
# Scalar / array type aliases
# ---------------------------------------------------------------------------
Observation: TypeAlias = Any  # array or pytree of arrays
Action: TypeAlias = chex.Array
Reward: TypeAlias = chex.Array
Value: TypeAlias = chex.Array
AgentInternalState: TypeAlias = Any  # recurrent state pytree, () if none

Params: TypeAlias = Any  # Equinox model
OptState: TypeAlias = Any  # optax optimizer state


class StepType(enum.IntEnum):
    """Position of a lane within its episode."""

    FIRST = 0
    MID = 1
    LAST = 2


# ---------------------------------------------------------------------------
# Episode-boundary tags
# ---------------------------------------------------------------------------
class StepKind(NamedTuple):
    """Batched per-lane :class:`StepType` tags.

    ``value`` is an int32 array, one entry per lane (and per time step
    when stacked).  Lanes are independent clocks: one tick may report
    ``FIRST`` for lanes that just restarted and ``LAST`` for lanes that
    just finished.
    """

    value: chex.Array

    @staticmethod
    def first(batch_size: int) -> StepKind:
        return StepKind(jnp.full((batch_size,), int(StepType.FIRST), dtype=jnp.int32))

    @staticmethod
    def mid(batch_size: int) -> StepKind:
        return StepKind(jnp.full((batch_size,), int(StepType.MID), dtype=jnp.int32))

    @staticmethod
    def last(batch_size: int) -> StepKind:
        return StepKind(jnp.full((batch_size,), int(StepType.LAST), dtype=jnp.int32))

    def is_first(self) -> chex.Array:
        return self.value == int(StepType.FIRST)

    def is_mid(self) -> chex.Array:
        return self.value == int(StepType.MID)

    def is_last(self) -> chex.Array:
        return self.value == int(StepType.LAST)

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(self.value.shape)


class Step(NamedTuple):
    """Snapshot of a batched environment at one tick.

    Fields:
        kind:        Per-lane episode position.   ``(B,)``
        observation: Observation per lane.        ``(B, *obs_shape)``
        reward:      Reward received on arrival.  ``(B,)``
    """

    kind: StepKind
    observation: Observation
    reward: Reward


class Trajectory(NamedTuple):
    """One recorded transition per lane.

    ``step_kind`` and ``reward`` belong to the step *reached* by taking
    ``action`` in ``observation``.  ``state`` is the agent's internal
    state when the action was chosen, so recurrent agents can resume the
    same computation on replay.

    When sampled from a replay buffer every field gains a leading time
    axis: ``(T, B, ...)``.
    """

    step_kind: StepKind
    observation: Observation
    action: Action
    reward: Reward
    state: AgentInternalState = ()
