#!/usr/bin/env python3
"""Train DQN via CLI.

Usage::

    python scripts/train_dqn.py --help
    python scripts/train_dqn.py --env-id CartPole-v1
    python scripts/train_dqn.py --dqn.lr 5e-4 --dqn.train-sequence-length 4
    python scripts/train_dqn.py --runner.num-iterations 50000 --runner.num-envs 16
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import tyro

from lockstep_rl.algorithms.dqn.config import DQNConfig
from lockstep_rl.env import make
from lockstep_rl.metrics import setup_logging
from lockstep_rl.runner import RunnerConfig, evaluate, train_dqn


@dataclass(frozen=True)
class TrainDQNArgs:
    """DQN training configuration."""

    # Environment
    env_id: str = "CartPole-v1"

    # Algorithm hyperparameters
    dqn: DQNConfig = DQNConfig(
        train_sequence_length=1,
        max_replayed_sequence_length=5_000,
        target_update_forget_factor=0.99,
        epsilon_greedy=1.0,
        epsilon_end=0.05,
        epsilon_decay_steps=10_000,
    )

    # Runner / outer-loop settings
    runner: RunnerConfig = RunnerConfig()

    # Console verbosity
    verbose: bool = False


def main(args: TrainDQNArgs) -> None:
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    env = make(args.env_id, batch_size=args.runner.num_envs, seed=args.runner.seed)

    result = train_dqn(env, dqn_config=args.dqn, runner_config=args.runner)

    n_episodes = len(result.episode_returns)
    last_returns = result.episode_returns[-10:]
    mean_return = sum(last_returns) / len(last_returns) if last_returns else 0.0
    print(
        f"Training complete | "
        f"episodes={n_episodes} | "
        f"mean_return(last 10)={mean_return:.1f}"
    )

    if args.runner.eval_episodes > 0:
        eval_env = make(args.env_id, batch_size=args.runner.num_envs, seed=args.runner.seed + 1)
        metrics = evaluate(
            result.agent,
            eval_env,
            n_episodes=args.runner.eval_episodes,
            max_ticks=args.runner.eval_max_ticks,
        )
        print(
            f"Evaluation | return={metrics.mean_return:.1f} +/- {metrics.std_return:.1f} | "
            f"length={metrics.mean_length:.1f}"
        )


if __name__ == "__main__":
    main(tyro.cli(TrainDQNArgs))
