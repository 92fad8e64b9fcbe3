"""Hybrid DQN training loop.

The replay buffer is mutable and stays in Python (numpy); acting and
gradient steps are jitted inside :class:`DQNAgent`.  This module only
drives iterations, tracks episode returns and reports progress.

Usage::

    from lockstep_rl.algorithms.dqn import DQNConfig
    from lockstep_rl.env import make
    from lockstep_rl.runner import RunnerConfig, train_dqn

    runner_config = RunnerConfig(num_iterations=20_000, num_envs=8)
    env = make("CartPole-v1", batch_size=runner_config.num_envs)
    result = train_dqn(env, dqn_config=DQNConfig(), runner_config=runner_config)
    result.episode_returns[-10:]
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, NamedTuple

import numpy as np

from lockstep_rl.algorithms.dqn.config import DQNConfig
from lockstep_rl.env.base import BatchedEnvironment
from lockstep_rl.metrics import MetricsLogger, log_step_progress
from lockstep_rl.runner.callbacks import EpisodeReturnTracker
from lockstep_rl.runner.config import RunnerConfig
from lockstep_rl.runner.dqn_agent import DQNAgent

logger = logging.getLogger(__name__)

# Number of most recent episodes averaged into ``mean_return``.
_RETURN_WINDOW = 20


class DQNTrainResult(NamedTuple):
    """Return value from ``train_dqn``."""

    agent: DQNAgent
    episode_returns: list[float]
    metrics_log: list[dict[str, Any]]


def train_dqn(
    env: BatchedEnvironment,
    *,
    dqn_config: DQNConfig,
    runner_config: RunnerConfig,
    callback: Callable[[int, DQNAgent, dict[str, Any]], None] | None = None,
) -> DQNTrainResult:
    """Train a fresh :class:`DQNAgent` on ``env``.

    Args:
        env: Batched environment; it is not reset, training continues
            from its current step.
        dqn_config: DQN algorithm hyperparameters.
        runner_config: Outer-loop settings.
        callback: Optional ``callback(iteration, agent, record)`` called
            every ``runner_config.log_interval`` iterations and after the
            last one.

    Returns:
        ``DQNTrainResult`` with the trained agent, the undiscounted return
        of every completed episode, and the logged metric records.
    """
    agent = DQNAgent(env, dqn_config, seed=runner_config.seed)
    tracker = EpisodeReturnTracker(env.batch_size)
    metrics_log: list[dict[str, Any]] = []
    metrics_file = (
        MetricsLogger(runner_config.metrics_path)
        if runner_config.metrics_path is not None
        else None
    )
    logger.info(
        "Training DQN for %d iterations on %r", runner_config.num_iterations, env
    )

    try:
        for iteration in range(1, runner_config.num_iterations + 1):
            loss = agent.update(
                env,
                max_steps=runner_config.max_steps_per_iteration,
                max_episodes=runner_config.max_episodes_per_iteration,
                step_callbacks=(tracker,),
            )

            if (
                iteration % runner_config.log_interval == 0
                or iteration == runner_config.num_iterations
            ):
                recent = tracker.episode_returns[-_RETURN_WINDOW:]
                record = {
                    "iteration": iteration,
                    "phase": agent.phase.value,
                    "training_step": agent.training_step,
                    "env_steps": agent.total_steps,
                    "episodes": agent.total_episodes,
                    "epsilon": agent.epsilon,
                    "loss": loss,
                    "mean_return": float(np.mean(recent)) if recent else None,
                }
                if agent.last_metrics is not None:
                    record["q_mean"] = float(agent.last_metrics.q_mean)
                metrics_log.append(record)
                log_step_progress(
                    iteration, runner_config.num_iterations, record, logger_name=__name__
                )
                if metrics_file is not None:
                    metrics_file.write(record)
                if callback is not None:
                    callback(iteration, agent, record)
    finally:
        if metrics_file is not None:
            metrics_file.close()

    return DQNTrainResult(
        agent=agent,
        episode_returns=list(tracker.episode_returns),
        metrics_log=metrics_log,
    )
