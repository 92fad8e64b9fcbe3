"""Shared fixtures.

``Countdown`` is a deterministic toy task used wherever a test needs to
know exactly when episodes end: every episode lasts ``episode_length``
ticks and the reward is ``action + 1``.
"""

from __future__ import annotations

import equinox as eqx
import jax
import jax.numpy as jnp
import pytest

from lockstep_rl.env import BatchedEnv, make
from lockstep_rl.env.base import Environment, EnvParams, EnvState
from lockstep_rl.env.spaces import Box, Discrete


class CountdownState(EnvState):
    remaining: jax.Array


class CountdownParams(EnvParams):
    episode_length: int = eqx.field(static=True, default=3)
    n_actions: int = eqx.field(static=True, default=2)


class Countdown(Environment):
    """obs = [ticks remaining]; done when it reaches 0."""

    def default_params(self) -> CountdownParams:
        return CountdownParams()

    def reset(self, key, params):
        state = CountdownState(time=jnp.int32(0), remaining=jnp.int32(params.episode_length))
        return self._observe(state), state

    def step(self, key, state, action, params):
        new_state = CountdownState(time=state.time + 1, remaining=state.remaining - 1)
        done = new_state.remaining <= 0
        reward = action.astype(jnp.float32) + 1.0
        return self._observe(new_state), new_state, reward, done, {}

    def observation_space(self, params):
        return Box(0.0, float(params.episode_length), shape=(1,))

    def action_space(self, params):
        return Discrete(params.n_actions)

    @staticmethod
    def _observe(state):
        return state.remaining.astype(jnp.float32)[None]


@pytest.fixture
def make_countdown():
    """Factory: ``make_countdown(batch_size=2, episode_length=3, n_actions=2)``."""

    def _make(batch_size: int = 2, episode_length: int = 3, n_actions: int = 2) -> BatchedEnv:
        params = CountdownParams(episode_length=episode_length, n_actions=n_actions)
        return BatchedEnv(Countdown(), batch_size, params=params)

    return _make


@pytest.fixture
def countdown_env(make_countdown) -> BatchedEnv:
    return make_countdown()


@pytest.fixture
def cartpole_env() -> BatchedEnv:
    return make("CartPole-v1", batch_size=4, seed=0)
