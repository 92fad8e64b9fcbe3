"""Environment interfaces.

Two layers:

- ``Environment``: a single-lane, pure-JAX task in the Gymnax style.
  ``reset`` and ``step`` are pure functions of ``(key, state, params)``
  and can be vmapped across lanes::

      obs, state = env.reset(key, params)
      obs, state, reward, done, info = env.step(key, state, action, params)

- ``BatchedEnvironment``: the stateful, lockstep view consumed by agents.
  It advances ``batch_size`` lanes per tick and reports per-lane
  :class:`~lockstep_rl.types.StepKind` tags.  See
  :class:`lockstep_rl.env.batched.BatchedEnv` for the implementation that
  drives any ``Environment``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable

import equinox as eqx
import jax

from lockstep_rl.env.spaces import Box, Discrete, MultiDiscrete, Space
from lockstep_rl.types import Step


class EnvState(eqx.Module):
    """Base class for single-lane environment states (immutable pytrees)."""

    time: jax.Array  # ticks since the episode started


class EnvParams(eqx.Module):
    """Base class for environment parameters, kept apart from state so a
    single parameter set can be shared by every lane (``in_axes=None``)."""


class Environment(ABC):
    """Abstract base for pure-JAX single-lane environments."""

    @abstractmethod
    def reset(
        self,
        key: jax.Array,
        params: EnvParams,
    ) -> tuple[jax.Array, EnvState]:
        """Start a new episode and return ``(obs, state)``."""
        ...

    @abstractmethod
    def step(
        self,
        key: jax.Array,
        state: EnvState,
        action: jax.Array,
        params: EnvParams,
    ) -> tuple[jax.Array, EnvState, jax.Array, jax.Array, dict[str, Any]]:
        """Advance one tick.

        Returns:
            ``(obs, state, reward, done, info)``; *done* is true when the
            episode ended on this tick (terminated or truncated).
        """
        ...

    @abstractmethod
    def default_params(self) -> EnvParams:
        ...

    @abstractmethod
    def observation_space(self, params: EnvParams) -> Box:
        ...

    @abstractmethod
    def action_space(self, params: EnvParams) -> Discrete | MultiDiscrete:
        ...

    @property
    def name(self) -> str:
        return self.__class__.__name__


@runtime_checkable
class BatchedEnvironment(Protocol):
    """Lockstep environment of ``batch_size`` independent lanes."""

    batch_size: int
    action_space: Space

    def current_step(self) -> Step: ...

    def step(self, action: jax.Array) -> Step: ...

    def reset(self) -> Step: ...
