"""Greedy-policy evaluation on a batched environment.

Usage::

    eval_env = make("CartPole-v1", batch_size=8, seed=99)
    metrics = evaluate(agent, eval_env, n_episodes=10)
    # metrics.mean_return, metrics.std_return, metrics.mean_length
"""

from __future__ import annotations

import logging
from typing import NamedTuple

import numpy as np

from lockstep_rl.agent.base import Agent
from lockstep_rl.env.base import BatchedEnvironment
from lockstep_rl.runner.callbacks import EpisodeReturnTracker

logger = logging.getLogger(__name__)


class EvalMetrics(NamedTuple):
    """Aggregated evaluation results."""

    mean_return: float
    std_return: float
    mean_length: float


def evaluate(
    agent: Agent,
    environment: BatchedEnvironment,
    *,
    n_episodes: int,
    max_ticks: int = 10_000,
) -> EvalMetrics:
    """Run the greedy policy until ``n_episodes`` episodes have completed.

    The environment is reset first, so every counted episode starts
    from ``FIRST``.  Lanes run in lockstep; when several lanes finish on
    the same tick, the surplus beyond ``n_episodes`` is discarded in
    lane order.

    Raises:
        ValueError: If ``n_episodes`` is not positive.
        RuntimeError: If ``max_ticks`` ticks pass before enough episodes
            complete.
    """
    if n_episodes <= 0:
        raise ValueError(f"n_episodes must be positive, got {n_episodes}")

    tracker = EpisodeReturnTracker(environment.batch_size)
    step = environment.reset()
    for _ in range(max_ticks):
        if tracker.num_episodes >= n_episodes:
            break
        step = environment.step(agent.action(step, explore=False))
        tracker.observe(step.kind, step.reward)
    else:
        if tracker.num_episodes < n_episodes:
            raise RuntimeError(
                f"Only {tracker.num_episodes}/{n_episodes} episodes finished "
                f"within {max_ticks} ticks."
            )

    returns = np.asarray(tracker.episode_returns[:n_episodes])
    lengths = np.asarray(tracker.episode_lengths[:n_episodes])
    metrics = EvalMetrics(
        mean_return=float(returns.mean()),
        std_return=float(returns.std()),
        mean_length=float(lengths.mean()),
    )
    logger.info(
        "Evaluated %d episodes: return %.2f +/- %.2f, length %.1f",
        n_episodes,
        metrics.mean_return,
        metrics.std_return,
        metrics.mean_length,
    )
    return metrics
