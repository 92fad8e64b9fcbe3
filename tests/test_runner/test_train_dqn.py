"""Tests for the DQN training loop, episode tracking and evaluation."""

from __future__ import annotations

import jax.numpy as jnp
import pytest

from lockstep_rl.algorithms.dqn import DQNConfig
from lockstep_rl.metrics import read_metrics
from lockstep_rl.runner import (
    DQNAgent,
    DQNTrainResult,
    EpisodeReturnTracker,
    EvalMetrics,
    RunnerConfig,
    evaluate,
    train_dqn,
)
from lockstep_rl.types import StepKind, StepType

F, M, L = int(StepType.FIRST), int(StepType.MID), int(StepType.LAST)

SMALL_DQN = DQNConfig(hidden_sizes=(16,), train_sequence_length=1, max_replayed_sequence_length=64)


class TestEpisodeReturnTracker:
    def test_accumulates_until_last(self):
        tracker = EpisodeReturnTracker(batch_size=2)
        ticks = [
            ([M, M], [1.0, 2.0]),
            ([L, M], [1.0, 2.0]),
            ([F, L], [0.0, 2.0]),
            ([M, F], [5.0, 0.0]),
        ]
        for kinds, rewards in ticks:
            tracker.observe(StepKind(jnp.array(kinds, dtype=jnp.int32)), jnp.array(rewards))
        assert tracker.episode_returns == [2.0, 6.0]
        assert tracker.episode_lengths == [2, 3]
        assert tracker.num_episodes == 2

    def test_same_tick_endings_in_lane_order(self):
        tracker = EpisodeReturnTracker(batch_size=3)
        tracker.observe(StepKind(jnp.array([L, M, L], dtype=jnp.int32)), jnp.array([1.0, 2.0, 3.0]))
        assert tracker.episode_returns == [1.0, 3.0]


class TestRunnerConfig:
    def test_needs_a_budget(self):
        with pytest.raises(ValueError):
            RunnerConfig(max_steps_per_iteration=None, max_episodes_per_iteration=None)

    @pytest.mark.parametrize("kwargs", [{"num_iterations": 0}, {"log_interval": 0}])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            RunnerConfig(**kwargs)


class TestTrainDQN:
    def test_returns_result(self, countdown_env):
        runner_config = RunnerConfig(num_iterations=10, max_steps_per_iteration=2, log_interval=5)
        result = train_dqn(countdown_env, dqn_config=SMALL_DQN, runner_config=runner_config)

        assert isinstance(result, DQNTrainResult)
        assert isinstance(result.agent, DQNAgent)
        assert [r["iteration"] for r in result.metrics_log] == [5, 10]
        assert result.agent.training_step > 0
        # Three actions per episode, each rewarded 1 or 2.
        assert result.episode_returns
        assert all(3.0 <= r <= 6.0 for r in result.episode_returns)

    def test_episode_budget(self, countdown_env):
        runner_config = RunnerConfig(
            num_iterations=3,
            max_steps_per_iteration=None,
            max_episodes_per_iteration=2,
            log_interval=1,
        )
        result = train_dqn(countdown_env, dqn_config=SMALL_DQN, runner_config=runner_config)
        assert len(result.episode_returns) == 6
        assert result.agent.total_episodes == 6

    def test_writes_metrics_file(self, countdown_env, tmp_path):
        path = tmp_path / "run" / "metrics.jsonl"
        runner_config = RunnerConfig(
            num_iterations=4, max_steps_per_iteration=2, log_interval=2, metrics_path=str(path)
        )
        train_dqn(countdown_env, dqn_config=SMALL_DQN, runner_config=runner_config)

        records = read_metrics(path)
        assert [r["iteration"] for r in records] == [2, 4]
        assert {"loss", "epsilon", "episodes", "wall_time"} <= set(records[0])

    def test_callback(self, countdown_env):
        calls = []
        runner_config = RunnerConfig(num_iterations=6, max_steps_per_iteration=2, log_interval=3)
        train_dqn(
            countdown_env,
            dqn_config=SMALL_DQN,
            runner_config=runner_config,
            callback=lambda it, agent, record: calls.append((it, record["iteration"])),
        )
        assert calls == [(3, 3), (6, 6)]

    def test_cartpole_smoke(self, cartpole_env):
        runner_config = RunnerConfig(num_iterations=60, max_steps_per_iteration=4, log_interval=30)
        result = train_dqn(cartpole_env, dqn_config=SMALL_DQN, runner_config=runner_config)
        assert result.agent.total_steps >= 240
        assert all(r >= 1.0 for r in result.episode_returns)


class TestEvaluate:
    def test_greedy_countdown(self, countdown_env):
        agent = DQNAgent(countdown_env, SMALL_DQN)
        metrics = evaluate(agent, countdown_env, n_episodes=4)
        assert isinstance(metrics, EvalMetrics)
        assert metrics.mean_length == pytest.approx(3.0)
        assert 3.0 <= metrics.mean_return <= 6.0
        # Greedy policy, identical lanes.
        assert metrics.std_return == pytest.approx(0.0)

    def test_runs_out_of_ticks(self, countdown_env):
        agent = DQNAgent(countdown_env, SMALL_DQN)
        with pytest.raises(RuntimeError):
            evaluate(agent, countdown_env, n_episodes=4, max_ticks=2)

    def test_invalid_episode_count(self, countdown_env):
        agent = DQNAgent(countdown_env, SMALL_DQN)
        with pytest.raises(ValueError):
            evaluate(agent, countdown_env, n_episodes=0)
