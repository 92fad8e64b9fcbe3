"""Lockstep batched runner for pure-JAX environments.

``BatchedEnv`` vmaps an :class:`~lockstep_rl.env.base.Environment` over
``batch_size`` lanes and keeps the current lane states, so agents see the
stateful ``current_step`` / ``step`` / ``reset`` interface.

Episode boundaries are per lane:

- the tick on which a lane's episode ends is reported as ``LAST`` with the
  terminal observation and final reward;
- on the following tick that lane restarts: it reports ``FIRST`` with a
  fresh observation and zero reward, and the action it was given is
  ignored;
- every other tick is ``MID``.

So each lane's trace reads ``FIRST MID ... MID LAST FIRST MID ...``
regardless of what the other lanes are doing.
"""

from __future__ import annotations

import logging

import jax
import jax.numpy as jnp

from lockstep_rl.env.base import Environment, EnvParams, EnvState
from lockstep_rl.env.spaces import Box, Discrete, MultiDiscrete
from lockstep_rl.types import Step, StepKind, StepType

logger = logging.getLogger(__name__)


def _select(mask: jax.Array, on_true: jax.Array, on_false: jax.Array) -> jax.Array:
    """Lane-wise ``where`` broadcasting a ``(B,)`` mask over trailing axes."""
    mask = mask.reshape(mask.shape + (1,) * (on_true.ndim - mask.ndim))
    return jnp.where(mask, on_true, on_false)


class BatchedEnv:
    """Run ``batch_size`` copies of ``env`` in lockstep.

    Args:
        env: Single-lane pure-JAX environment.
        batch_size: Number of lanes.
        params: Environment parameters shared by all lanes.  Defaults to
            ``env.default_params()``.
        seed: Seed for the environment's PRNG stream.
    """

    def __init__(
        self,
        env: Environment,
        batch_size: int,
        *,
        params: EnvParams | None = None,
        seed: int = 0,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.env = env
        self.batch_size = batch_size
        self.params = env.default_params() if params is None else params

        lane_space = env.action_space(self.params)
        if isinstance(lane_space, Discrete):
            self.action_space = Discrete(lane_space.n, batch_size=batch_size)
        elif isinstance(lane_space, MultiDiscrete):
            self.action_space = MultiDiscrete(lane_space.sizes, batch_size=batch_size)
        else:
            raise TypeError(f"Unsupported action space {lane_space!r}")
        self.observation_space: Box = env.observation_space(self.params)

        self._key = jax.random.PRNGKey(seed)
        self._reset_fn = jax.jit(jax.vmap(env.reset, in_axes=(0, None)))
        self._step_fn = jax.jit(jax.vmap(env.step, in_axes=(0, 0, 0, None)))

        self._state: EnvState | None = None
        self._step: Step | None = None
        self._needs_reset = jnp.zeros(batch_size, dtype=jnp.bool_)
        self.reset()

    def _lane_keys(self) -> jax.Array:
        self._key, key = jax.random.split(self._key)
        return jax.random.split(key, self.batch_size)

    def current_step(self) -> Step:
        return self._step

    def reset(self) -> Step:
        """Restart every lane."""
        logger.debug("Resetting %d lanes of %s", self.batch_size, self.env.name)
        obs, self._state = self._reset_fn(self._lane_keys(), self.params)
        self._needs_reset = jnp.zeros(self.batch_size, dtype=jnp.bool_)
        self._step = Step(
            kind=StepKind.first(self.batch_size),
            observation=obs,
            reward=jnp.zeros(self.batch_size, dtype=jnp.float32),
        )
        return self._step

    def step(self, action: jax.Array) -> Step:
        """Advance every lane by one tick.

        Raises:
            ValueError: If ``action`` is not contained in the action space.
        """
        action = jnp.asarray(action)
        if not self.action_space.contains(action):
            raise ValueError("Invalid action provided.")

        obs, state, reward, done, _info = self._step_fn(
            self._lane_keys(), self._state, action, self.params,
        )
        reset_obs, reset_state = self._reset_fn(self._lane_keys(), self.params)

        restart = self._needs_reset
        self._state = jax.tree.map(
            lambda fresh, cont: _select(restart, fresh, cont), reset_state, state,
        )
        obs = jax.tree.map(
            lambda fresh, cont: _select(restart, fresh, cont), reset_obs, obs,
        )
        reward = jnp.where(restart, 0.0, reward).astype(jnp.float32)
        done = jnp.where(restart, False, done)

        kind = jnp.where(
            restart,
            int(StepType.FIRST),
            jnp.where(done, int(StepType.LAST), int(StepType.MID)),
        ).astype(jnp.int32)
        self._needs_reset = done
        self._step = Step(kind=StepKind(kind), observation=obs, reward=reward)
        return self._step

    def __repr__(self) -> str:
        return f"BatchedEnv({self.env.name}, batch_size={self.batch_size})"
