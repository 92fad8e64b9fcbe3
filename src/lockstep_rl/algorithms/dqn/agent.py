"""Pure-functional DQN on batched, time-major replay windows.

All methods are static pure functions; state is threaded explicitly
through ``DQNState``.  The stateful driver that owns the replay buffer and
talks to the environment is :class:`lockstep_rl.runner.DQNAgent`.

Usage::

    config = DQNConfig(train_sequence_length=4, max_replayed_sequence_length=100)
    state = DQN.init(rng, obs_shape=(4,), n_actions=2, config=config)
    action, state = DQN.act(state, step.observation, env.action_space, config=config)
    state, metrics = DQN.update(state, window, config=config)
"""

from __future__ import annotations

import math
from functools import partial

import chex
import equinox as eqx
import jax
import jax.numpy as jnp
import optax

from lockstep_rl.algorithms.dqn.config import DQNConfig
from lockstep_rl.algorithms.dqn.network import QNetwork, soft_update
from lockstep_rl.algorithms.dqn.types import DQNMetrics, DQNState
from lockstep_rl.distributions import Categorical
from lockstep_rl.env.spaces import Discrete
from lockstep_rl.types import Params, Trajectory


def current_epsilon(step: chex.Array, config: DQNConfig) -> chex.Array:
    """Exploration rate after ``step`` gradient steps."""
    if config.epsilon_end is None or config.epsilon_decay_steps == 0:
        return jnp.float32(config.epsilon_greedy)
    frac = jnp.clip(step / config.epsilon_decay_steps, 0.0, 1.0)
    return config.epsilon_greedy + frac * (config.epsilon_end - config.epsilon_greedy)


def td_loss(
    params: Params,
    target_params: Params,
    trajectory: Trajectory,
    discount_factor: float,
) -> tuple[chex.Array, chex.Array]:
    """Masked Huber TD loss on a time-major window.

    ``trajectory`` leaves have shape ``(L + 1, B, ...)``.  The first ``L``
    steps are trained on; the trailing step only provides the observation
    that the target network bootstraps from.

    Returns:
        ``(loss, q_taken)`` where ``q_taken`` has shape ``(L, B)``.
    """
    actions = trajectory.action.astype(jnp.int32)
    q_all = jax.vmap(jax.vmap(params))(trajectory.observation)
    q_taken = jnp.take_along_axis(q_all, actions[..., None], axis=-1)[..., 0]
    seq_len = q_taken.shape[0] - 1
    q_taken = q_taken[:seq_len]

    # Bootstrap from the target network at t + 1.
    next_obs = jax.tree.map(lambda x: x[1:], trajectory.observation)
    next_q = jnp.max(jax.vmap(jax.vmap(target_params))(next_obs), axis=-1)

    # step_kind[t] is the kind of the step reached from observation[t].
    # Only LAST is masked: the restart tick (kind FIRST, observation is the
    # previous terminal one) still regresses toward gamma * max Q of the
    # next episode's first observation.
    not_last = 1.0 - trajectory.step_kind.is_last()[:seq_len].astype(jnp.float32)
    targets = trajectory.reward[:seq_len] + discount_factor * not_last * next_q
    targets = jax.lax.stop_gradient(targets)

    # Huber with delta=1: quadratic below 1, linear above, so the
    # gradient magnitude is bounded by 1.
    per_step = optax.huber_loss(q_taken, targets, delta=1.0) * not_last

    # Sum over time, average over the batch only: each lane keeps weight
    # 1/B no matter how many of its steps are masked.
    return jnp.mean(jnp.sum(per_step, axis=0)), q_taken


class DQN:
    """Namespace for DQN pure functions.

    Not instantiated; all methods are static.
    """

    @staticmethod
    def init(
        rng: chex.PRNGKey,
        obs_shape: tuple[int, ...],
        n_actions: int,
        config: DQNConfig,
        *,
        network: eqx.Module | None = None,
    ) -> DQNState:
        """Create the initial DQN state.

        The target network starts as the online network itself; Equinox
        modules are immutable, so sharing is a copy.
        """
        k1, k2 = jax.random.split(rng)
        if network is None:
            network = QNetwork(math.prod(obs_shape), n_actions, config.hidden_sizes, key=k1)

        optimizer = config.make_optimizer()
        opt_state = optimizer.init(eqx.filter(network, eqx.is_array))

        return DQNState(
            params=network,
            target_params=network,
            opt_state=opt_state,
            step=jnp.zeros((), dtype=jnp.int32),
            rng=k2,
        )

    @staticmethod
    @partial(jax.jit, static_argnames=("config", "explore"))
    def act(
        state: DQNState,
        observation: chex.Array,
        action_space: Discrete,
        *,
        config: DQNConfig,
        explore: bool = True,
    ) -> tuple[chex.Array, DQNState]:
        """Epsilon-greedy action per lane (pure function).

        Args:
            state: Current DQN state.
            observation: Batched observation, shape ``(B, *obs_shape)``.
            action_space: Batched action space with ``batch_size == B``.
            config: DQN hyperparameters (static).
            explore: If False, always take the arg-max action.

        Returns:
            ``(action, new_state)``; ``action`` has shape ``(B,)``.
        """
        rng, key_eps, key_rand, key_dist = jax.random.split(state.rng, 4)

        q_values = jax.vmap(state.params)(observation)
        distribution = Categorical(q_values)
        if explore and config.explore_with_distribution:
            greedy_action = distribution.sample(key_dist)
        else:
            greedy_action = distribution.mode()

        if explore:
            epsilon = current_epsilon(state.step, config)
            random_action = action_space.sample(key_rand).astype(jnp.int32)
            use_random = jax.random.uniform(key_eps, greedy_action.shape) < epsilon
            action = jnp.where(use_random, random_action, greedy_action)
        else:
            action = greedy_action

        return action, state._replace(rng=rng)

    @staticmethod
    @partial(jax.jit, static_argnames=("config",))
    def update(
        state: DQNState,
        trajectory: Trajectory,
        *,
        config: DQNConfig,
    ) -> tuple[DQNState, DQNMetrics]:
        """One gradient step on a sampled window (pure function).

        Args:
            state: Current DQN state.
            trajectory: Time-major window, leaves shaped ``(L + 1, B, ...)``.
            config: DQN hyperparameters (static).

        Returns:
            ``(new_state, metrics)``.
        """
        optimizer = config.make_optimizer()

        (loss, q_taken), grads = eqx.filter_value_and_grad(td_loss, has_aux=True)(
            state.params, state.target_params, trajectory, config.discount_factor,
        )
        updates, new_opt_state = optimizer.update(
            grads, state.opt_state, eqx.filter(state.params, eqx.is_array)
        )
        new_params = eqx.apply_updates(state.params, updates)

        new_step = state.step + 1
        new_target_params = state.target_params
        if config.target_update_forget_factor < 1.0:
            new_target_params = jax.lax.cond(
                new_step % config.target_update_period == 0,
                lambda: soft_update(
                    state.target_params, new_params, config.target_update_forget_factor
                ),
                lambda: state.target_params,
            )

        new_state = DQNState(
            params=new_params,
            target_params=new_target_params,
            opt_state=new_opt_state,
            step=new_step,
            rng=state.rng,
        )
        metrics = DQNMetrics(
            loss=loss,
            q_mean=jnp.mean(q_taken),
            epsilon=current_epsilon(new_step, config),
        )
        return new_state, metrics
