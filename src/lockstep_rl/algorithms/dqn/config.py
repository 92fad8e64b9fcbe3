"""DQN hyperparameters."""

from __future__ import annotations

from dataclasses import dataclass

import optax


@dataclass(frozen=True)
class DQNConfig:
    """All DQN hyperparameters in one place.

    Frozen (and therefore hashable), so it can be passed to jitted
    functions as a static argument.  Invalid combinations raise
    ``ValueError`` at construction, before any agent exists.
    """

    # Network
    hidden_sizes: tuple[int, ...] = (128, 128)

    # Optimization
    lr: float = 1e-3
    max_grad_norm: float = 10.0
    discount_factor: float = 0.99

    # Replay windows: train on train_sequence_length steps plus one
    # trailing step that only supplies the bootstrap observation.
    train_sequence_length: int = 1
    max_replayed_sequence_length: int = 10_000
    train_steps_per_iteration: int = 1

    # Target network: target = f * target + (1 - f) * online,
    # applied every target_update_period training steps.
    target_update_forget_factor: float = 1.0
    target_update_period: int = 1

    # Behavior policy
    epsilon_greedy: float = 0.1
    # Linear decay from epsilon_greedy to epsilon_end over
    # epsilon_decay_steps training steps; 0 keeps epsilon constant.
    epsilon_end: float | None = None
    epsilon_decay_steps: int = 0
    # Draw greedy actions from softmax(Q) instead of taking the arg-max.
    explore_with_distribution: bool = False

    def __post_init__(self) -> None:
        if self.train_sequence_length <= 0:
            raise ValueError(
                "The training sequence length must be greater than 0, "
                f"got {self.train_sequence_length}."
            )
        if self.train_sequence_length >= self.max_replayed_sequence_length:
            raise ValueError(
                f"The training sequence length ({self.train_sequence_length}) must be "
                "smaller than the maximum replayed sequence length "
                f"({self.max_replayed_sequence_length})."
            )
        if not 0.0 < self.target_update_forget_factor <= 1.0:
            raise ValueError(
                "The target update forget factor must be in the interval (0, 1], "
                f"got {self.target_update_forget_factor}."
            )
        if self.target_update_period <= 0:
            raise ValueError(
                f"target_update_period must be positive, got {self.target_update_period}."
            )
        if self.train_steps_per_iteration <= 0:
            raise ValueError(
                "train_steps_per_iteration must be positive, "
                f"got {self.train_steps_per_iteration}."
            )
        for name in ("epsilon_greedy", "epsilon_end"):
            value = getattr(self, name)
            if value is not None and not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}.")
        if self.epsilon_decay_steps < 0:
            raise ValueError(
                f"epsilon_decay_steps must be non-negative, got {self.epsilon_decay_steps}."
            )
        if not 0.0 <= self.discount_factor <= 1.0:
            raise ValueError(f"discount_factor must be in [0, 1], got {self.discount_factor}.")

    def make_optimizer(self) -> optax.GradientTransformation:
        """Build the optax optimizer chain for this config."""
        return optax.chain(
            optax.clip_by_global_norm(self.max_grad_norm),
            optax.adam(self.lr),
        )
