"""Stateful DQN driver for batched environments.

Off-policy training needs a mutable replay buffer, which cannot live
inside a jitted function.  ``DQNAgent`` keeps the buffer and the counters
in Python and calls the jitted pure functions of
:class:`~lockstep_rl.algorithms.dqn.DQN` for acting and learning.

Lifecycle::

    IDLE      no buffer yet
      |  first update() call allocates batch_size x max_replayed_sequence_length
    WARMING   buffer filling; update() returns None
      |  some lane holds train_sequence_length + 1 records
    TRAINING  every update() ends with train_steps_per_iteration gradient steps
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence

import chex
import equinox as eqx
import jax
import numpy as np

from lockstep_rl.agent.base import StepCallback
from lockstep_rl.algorithms.dqn.agent import DQN, current_epsilon
from lockstep_rl.algorithms.dqn.config import DQNConfig
from lockstep_rl.algorithms.dqn.types import DQNMetrics
from lockstep_rl.dataprotocol.replay_buffer import UniformReplayBuffer
from lockstep_rl.distributions import Categorical
from lockstep_rl.env.base import BatchedEnvironment
from lockstep_rl.env.spaces import Discrete
from lockstep_rl.types import Step, Trajectory

logger = logging.getLogger(__name__)


class AgentPhase(enum.Enum):
    IDLE = "idle"
    WARMING = "warming"
    TRAINING = "training"


class DQNAgent:
    """Epsilon-greedy DQN agent over a lockstep batched environment.

    Args:
        environment: Environment the agent will act in.  Only its batch
            size, action space and observation shape are read here.
        config: DQN hyperparameters.
        seed: Seed for network initialization, exploration and replay
            sampling.
        network: Optional Equinox module mapping one observation to one
            Q-value per action.  Defaults to a :class:`QNetwork` MLP.

    Raises:
        TypeError: If the action space is not :class:`Discrete`.
    """

    def __init__(
        self,
        environment: BatchedEnvironment,
        config: DQNConfig,
        *,
        seed: int = 0,
        network: eqx.Module | None = None,
    ) -> None:
        if not isinstance(environment.action_space, Discrete):
            raise TypeError(
                f"DQN needs a Discrete action space, got {environment.action_space!r}"
            )
        self.config = config
        self.seed = seed
        self.batch_size = environment.batch_size
        self.action_space = environment.action_space
        obs_shape = tuple(environment.current_step().observation.shape[1:])

        self.state = DQN.init(
            jax.random.PRNGKey(seed),
            obs_shape,
            environment.action_space.n,
            config,
            network=network,
        )
        self.replay_buffer: UniformReplayBuffer | None = None
        self.agent_state: chex.ArrayTree = ()
        self.total_steps = 0
        self.total_episodes = 0
        self.last_metrics: DQNMetrics | None = None

    # ---- Introspection ----

    @property
    def window_length(self) -> int:
        """Length of each sampled training window, bootstrap step included."""
        return self.config.train_sequence_length + 1

    @property
    def phase(self) -> AgentPhase:
        if self.replay_buffer is None:
            return AgentPhase.IDLE
        if self.replay_buffer.can_sample(self.window_length):
            return AgentPhase.TRAINING
        return AgentPhase.WARMING

    @property
    def training_step(self) -> int:
        return int(self.state.step)

    @property
    def epsilon(self) -> float:
        return float(current_epsilon(self.state.step, self.config))

    # ---- Acting ----

    def action(self, step: Step, *, explore: bool = True) -> jax.Array:
        """One action per lane; advances the exploration PRNG."""
        action, self.state = DQN.act(
            self.state,
            step.observation,
            self.action_space,
            config=self.config,
            explore=explore,
        )
        return action

    def action_distribution(self, step: Step) -> Categorical:
        """Categorical over actions with the online Q-values as logits."""
        return Categorical(jax.vmap(self.state.params)(step.observation))

    # ---- Learning ----

    def train_on(self, window: Trajectory) -> DQNMetrics:
        """Apply one gradient step on a time-major ``(L + 1, B)`` window."""
        self.state, metrics = DQN.update(self.state, window, config=self.config)
        self.last_metrics = metrics
        return metrics

    def update(
        self,
        environment: BatchedEnvironment,
        *,
        max_steps: int | None = None,
        max_episodes: int | None = None,
        step_callbacks: Sequence[StepCallback] = (),
    ) -> float | None:
        """Interact until a budget is reached, then train.

        Each tick records ``Trajectory(next kind, current observation,
        action, next reward, agent state)`` and hands it to every callback.
        Lane ticks that are not ``LAST`` count toward ``max_steps``;
        ``LAST`` ticks count toward ``max_episodes``.

        Returns:
            Loss of the last gradient step, or ``None`` while warming up.

        Raises:
            ValueError: If neither budget is given.
        """
        if max_steps is None and max_episodes is None:
            raise ValueError("At least one of max_steps and max_episodes must be given.")

        if self.replay_buffer is None:
            self.replay_buffer = UniformReplayBuffer(
                self.batch_size,
                self.config.max_replayed_sequence_length,
                seed=self.seed,
            )
            logger.info("Allocated %r", self.replay_buffer)

        steps = 0
        episodes = 0
        while (max_steps is None or steps < max_steps) and (
            max_episodes is None or episodes < max_episodes
        ):
            step = environment.current_step()
            action = self.action(step, explore=True)
            next_step = environment.step(action)

            trajectory = Trajectory(
                step_kind=next_step.kind,
                observation=step.observation,
                action=action,
                reward=next_step.reward,
                state=self.agent_state,
            )
            self.replay_buffer.record(trajectory)
            for callback in step_callbacks:
                callback(trajectory)

            n_last = int(np.sum(np.asarray(next_step.kind.is_last())))
            steps += self.batch_size - n_last
            episodes += n_last

        self.total_steps += steps
        self.total_episodes += episodes

        if self.phase is not AgentPhase.TRAINING:
            logger.debug(
                "Warming up: %d records buffered, need a lane with %d",
                len(self.replay_buffer),
                self.window_length,
            )
            return None

        for _ in range(self.config.train_steps_per_iteration):
            window = self.replay_buffer.sample_batch(self.batch_size, self.window_length)
            metrics = self.train_on(window)
        return float(metrics.loss)

    def __repr__(self) -> str:
        return (
            f"DQNAgent(phase={self.phase.value}, training_step={self.training_step}, "
            f"total_steps={self.total_steps}, total_episodes={self.total_episodes})"
        )
