"""Return and advantage estimators.

All functions are pure and jit-compatible.  Inputs are time-major:
``rewards`` / ``returns`` / ``values`` have shape ``(T,)`` or
``(T, *batch)`` and the step kinds share that shape.

Both backward recursions run through ``jax.lax.scan(reverse=True)`` and
reset the carried quantity elementwise at every ``LAST`` step, so a
window may cross any number of episode boundaries in any lane.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import chex
import jax
import jax.numpy as jnp

from lockstep_rl.types import StepKind


# ---------------------------------------------------------------------------
# Discounted returns
# ---------------------------------------------------------------------------

def discounted_returns(
    discount_factor: float,
    step_kinds: StepKind,
    rewards: chex.Array,
    final_value: chex.Array | None = None,
) -> chex.Array:
    """Compute bootstrapped discounted returns.

    ``returns[t] = rewards[t] + gamma * returns[t + 1]`` where the
    ``gamma * returns[t + 1]`` term is dropped on steps whose kind is
    ``LAST``, and ``returns[T]`` is ``final_value``.

    For more details refer to "Reinforcement Learning: An Introduction"
    (Sutton & Barto, 2nd edition).

    Args:
        discount_factor: Discount ``gamma``.
        step_kinds: Step kinds, shape ``(T, *batch)``.
        rewards: Rewards, shape ``(T, *batch)``.
        final_value: Value estimate bootstrapping the window's last step,
            shape ``batch``.  Defaults to zeros.

    Returns:
        Discounted returns with the same shape as ``rewards``.
    """
    rewards = jnp.asarray(rewards)
    rewards = rewards.astype(jnp.result_type(rewards, jnp.float32))
    if final_value is None:
        final_value = jnp.zeros_like(rewards[0])
    final_value = jnp.broadcast_to(jnp.asarray(final_value, dtype=rewards.dtype), rewards.shape[1:])

    def _scan_fn(future_return, step):
        reward, is_last = step
        discounted = jnp.where(is_last, 0.0, discount_factor * future_return)
        ret = reward + discounted
        return ret, ret

    _, returns = jax.lax.scan(
        _scan_fn,
        final_value,
        (rewards, step_kinds.is_last()),
        reverse=True,
    )
    return returns


# ---------------------------------------------------------------------------
# Advantage functions
# ---------------------------------------------------------------------------

@runtime_checkable
class AdvantageFunction(Protocol):
    """Maps ``(step_kinds, returns, values, final_value)`` to advantages.

    Implementations are pure and return an array shaped like ``returns``.
    """

    def __call__(
        self,
        step_kinds: StepKind,
        returns: chex.Array,
        values: chex.Array,
        final_value: chex.Array,
    ) -> chex.Array: ...


class NoAdvantage:
    """Use the raw returns as the learning signal."""

    def __call__(
        self,
        step_kinds: StepKind,
        returns: chex.Array,
        values: chex.Array,
        final_value: chex.Array,
    ) -> chex.Array:
        return jnp.asarray(returns)


class EmpiricalAdvantageEstimation:
    """Baseline subtraction: ``advantage[t] = returns[t] - values[t]``."""

    def __call__(
        self,
        step_kinds: StepKind,
        returns: chex.Array,
        values: chex.Array,
        final_value: chex.Array,
    ) -> chex.Array:
        return jnp.asarray(returns) - jnp.asarray(values)


class GeneralizedAdvantageEstimation:
    """Generalized advantage estimation (Schulman et al., 2015).

    See "High-Dimensional Continuous Control Using Generalized Advantage
    Estimation", https://arxiv.org/abs/1506.02438.

    Args:
        discount_factor: Discount ``gamma`` in ``[0, 1]``.
        discount_weight: Variance-reduction weight ``lambda`` in ``[0, 1]``.
    """

    def __init__(self, discount_factor: float, discount_weight: float = 1.0) -> None:
        if not 0.0 <= discount_factor <= 1.0:
            raise ValueError(f"discount_factor must be in [0, 1], got {discount_factor}")
        if not 0.0 <= discount_weight <= 1.0:
            raise ValueError(f"discount_weight must be in [0, 1], got {discount_weight}")
        self.discount_factor = discount_factor
        self.discount_weight = discount_weight

    def __call__(
        self,
        step_kinds: StepKind,
        returns: chex.Array,
        values: chex.Array,
        final_value: chex.Array,
    ) -> chex.Array:
        gamma = self.discount_factor
        lam = self.discount_weight
        returns = jnp.asarray(returns)
        returns = returns.astype(jnp.result_type(returns, jnp.float32))
        values = jnp.asarray(values, dtype=returns.dtype)
        final_value = jnp.broadcast_to(
            jnp.asarray(final_value, dtype=returns.dtype), returns.shape[1:]
        )

        def _scan_fn(carry, step):
            next_advantage, next_value = carry
            ret, value, is_last = step
            delta = ret + gamma * next_value - value
            next_advantage = jnp.where(is_last, 0.0, next_advantage)
            advantage = delta + gamma * lam * next_advantage
            return (advantage, value), advantage

        init_carry = (jnp.zeros_like(final_value), final_value)
        _, advantages = jax.lax.scan(
            _scan_fn,
            init_carry,
            (returns, values, step_kinds.is_last()),
            reverse=True,
        )
        return advantages

    def __repr__(self) -> str:
        return (
            f"GeneralizedAdvantageEstimation(discount_factor={self.discount_factor}, "
            f"discount_weight={self.discount_weight})"
        )
