"""DQN-specific state and metrics containers."""

from __future__ import annotations

from typing import NamedTuple

import chex

from lockstep_rl.types import OptState, Params


class DQNState(NamedTuple):
    """DQN agent state.

    Fields:
        params: Online Q-network (Equinox model).
        target_params: Slowly tracking target Q-network.
        opt_state: Optax optimizer state.
        step: Scalar count of gradient steps taken.
        rng: PRNG key for the behavior policy.
    """

    params: Params
    target_params: Params
    opt_state: OptState
    step: chex.Array
    rng: chex.PRNGKey


class DQNMetrics(NamedTuple):
    loss: chex.Array
    q_mean: chex.Array
    epsilon: chex.Array
