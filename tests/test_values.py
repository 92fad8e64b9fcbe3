"""Tests for discounted returns and advantage estimators."""

import jax
import jax.numpy as jnp
import pytest

from lockstep_rl.types import StepKind, StepType
from lockstep_rl.values import (
    AdvantageFunction,
    EmpiricalAdvantageEstimation,
    GeneralizedAdvantageEstimation,
    NoAdvantage,
    discounted_returns,
)

F, M, L = int(StepType.FIRST), int(StepType.MID), int(StepType.LAST)


def _kinds(*values):
    return StepKind(jnp.array(values, dtype=jnp.int32))


class TestDiscountedReturns:
    def test_terminal_episode(self):
        returns = discounted_returns(0.5, _kinds(M, M, L), jnp.array([1.0, 1.0, 1.0]))
        assert jnp.allclose(returns, jnp.array([1.75, 1.5, 1.0]))

    def test_bootstraps_from_final_value(self):
        returns = discounted_returns(
            0.5, _kinds(M, M), jnp.array([1.0, 1.0]), final_value=jnp.array(2.0)
        )
        assert jnp.allclose(returns, jnp.array([2.0, 2.0]))

    def test_final_value_ignored_after_last(self):
        returns = discounted_returns(
            0.5, _kinds(M, L), jnp.array([1.0, 1.0]), final_value=jnp.array(100.0)
        )
        assert jnp.allclose(returns, jnp.array([1.5, 1.0]))

    def test_several_episodes_in_one_window(self):
        returns = discounted_returns(
            0.5, _kinds(M, L, M, L, M), jnp.ones(5)
        )
        assert jnp.allclose(returns, jnp.array([1.5, 1.0, 1.5, 1.0, 1.0]))

    def test_first_does_not_cut(self):
        returns = discounted_returns(1.0, _kinds(F, M, L), jnp.array([0.0, 1.0, 1.0]))
        assert jnp.allclose(returns, jnp.array([2.0, 2.0, 1.0]))

    def test_batched_lanes_independent(self):
        kinds = StepKind(jnp.array([[M, M], [L, M], [M, M]], dtype=jnp.int32))
        rewards = jnp.array([[1.0, 1.0], [2.0, 2.0], [3.0, 3.0]])
        returns = discounted_returns(0.5, kinds, rewards)
        assert returns.shape == (3, 2)
        assert jnp.allclose(returns[:, 0], jnp.array([2.0, 2.0, 3.0]))
        assert jnp.allclose(returns[:, 1], jnp.array([2.75, 3.5, 3.0]))

    def test_integer_rewards(self):
        returns = discounted_returns(0.5, _kinds(M, M, L), jnp.array([1, 1, 1]))
        assert jnp.issubdtype(returns.dtype, jnp.floating)
        assert jnp.allclose(returns, jnp.array([1.75, 1.5, 1.0]))

    def test_jittable(self):
        fn = jax.jit(discounted_returns, static_argnums=0)
        returns = fn(0.5, _kinds(M, M, L), jnp.ones(3))
        assert jnp.allclose(returns, jnp.array([1.75, 1.5, 1.0]))


class TestGeneralizedAdvantageEstimation:
    def test_lambda_one_zero_values_matches_returns(self):
        key = jax.random.PRNGKey(0)
        rewards = jax.random.normal(key, (12, 3))
        kinds = StepKind(
            jnp.where(jax.random.uniform(jax.random.PRNGKey(1), (12, 3)) < 0.25, L, M).astype(
                jnp.int32
            )
        )
        gae = GeneralizedAdvantageEstimation(discount_factor=0.9, discount_weight=1.0)
        advantages = gae(kinds, rewards, jnp.zeros_like(rewards), jnp.zeros(3))
        expected = discounted_returns(0.9, kinds, rewards)
        assert jnp.allclose(advantages, expected, atol=1e-5)

    def test_lambda_zero_is_td_error(self):
        gae = GeneralizedAdvantageEstimation(discount_factor=0.5, discount_weight=0.0)
        advantages = gae(
            _kinds(M, M), jnp.array([1.0, 1.0]), jnp.array([0.5, 0.5]), jnp.array(1.0)
        )
        assert jnp.allclose(advantages, jnp.array([0.75, 1.0]))

    def test_carried_advantage_cut_at_last(self):
        gae = GeneralizedAdvantageEstimation(discount_factor=1.0, discount_weight=1.0)
        advantages = gae(
            _kinds(L, M), jnp.array([1.0, 1.0]), jnp.array([0.0, 2.0]), jnp.array(0.0)
        )
        assert jnp.allclose(advantages, jnp.array([3.0, -1.0]))

    def test_integer_returns(self):
        gae = GeneralizedAdvantageEstimation(discount_factor=0.5)
        advantages = gae(_kinds(M, M, L), jnp.array([1, 1, 1]), jnp.zeros(3), 0)
        assert jnp.issubdtype(advantages.dtype, jnp.floating)
        assert jnp.allclose(advantages, jnp.array([1.75, 1.5, 1.0]))

    @pytest.mark.parametrize(("gamma", "lam"), [(-0.1, 1.0), (1.5, 1.0), (0.9, -0.5), (0.9, 1.1)])
    def test_invalid_parameters(self, gamma, lam):
        with pytest.raises(ValueError):
            GeneralizedAdvantageEstimation(gamma, lam)

    def test_satisfies_protocol(self):
        assert isinstance(GeneralizedAdvantageEstimation(0.99, 0.95), AdvantageFunction)


class TestSimpleEstimators:
    def test_no_advantage_returns_returns(self):
        returns = jnp.array([1.0, 2.0, 3.0])
        out = NoAdvantage()(_kinds(M, M, L), returns, jnp.ones(3), jnp.array(0.0))
        assert jnp.array_equal(out, returns)

    def test_empirical_subtracts_values(self):
        returns = jnp.array([1.0, 2.0, 3.0])
        values = jnp.array([0.5, 0.5, 4.0])
        out = EmpiricalAdvantageEstimation()(_kinds(M, M, L), returns, values, jnp.array(0.0))
        assert jnp.allclose(out, jnp.array([0.5, 1.5, -1.0]))
        assert jnp.array_equal(returns, jnp.array([1.0, 2.0, 3.0]))

    def test_shape_preserved(self):
        returns = jnp.ones((4, 2))
        for estimator in (NoAdvantage(), EmpiricalAdvantageEstimation()):
            kinds = StepKind(jnp.full((4, 2), M, dtype=jnp.int32))
            assert estimator(kinds, returns, jnp.zeros((4, 2)), jnp.zeros(2)).shape == (4, 2)
