"""Runner configuration."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RunnerConfig:
    """Outer-loop settings for :func:`~lockstep_rl.runner.train_dqn`.

    One iteration is a single ``DQNAgent.update`` call: interact until
    the per-iteration step or episode budget is hit, then train.
    Algorithm settings live in ``DQNConfig``.
    """

    # Training budget
    num_iterations: int = 1_000
    max_steps_per_iteration: int | None = 1
    max_episodes_per_iteration: int | None = None

    # Environment
    num_envs: int = 8

    # Evaluation
    eval_episodes: int = 10
    eval_max_ticks: int = 10_000

    # Logging
    log_interval: int = 100
    metrics_path: str | None = None  # JSONL file; None = console only

    # Seeding
    seed: int = 0

    def __post_init__(self) -> None:
        if self.num_iterations <= 0:
            raise ValueError(f"num_iterations must be positive, got {self.num_iterations}")
        if self.max_steps_per_iteration is None and self.max_episodes_per_iteration is None:
            raise ValueError(
                "At least one of max_steps_per_iteration and "
                "max_episodes_per_iteration must be set."
            )
        if self.log_interval <= 0:
            raise ValueError(f"log_interval must be positive, got {self.log_interval}")
