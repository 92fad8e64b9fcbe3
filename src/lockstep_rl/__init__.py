"""lockstep_rl: batched reinforcement learning with JAX."""

from lockstep_rl.agent.base import Agent, StepCallback
from lockstep_rl.dataprotocol import InsufficientDataError, UniformReplayBuffer
from lockstep_rl.env import make
from lockstep_rl.metrics import MetricsLogger, setup_logging
from lockstep_rl.types import Step, StepKind, StepType, Trajectory
from lockstep_rl.values import (
    AdvantageFunction,
    EmpiricalAdvantageEstimation,
    GeneralizedAdvantageEstimation,
    NoAdvantage,
    discounted_returns,
)

__all__ = [
    "AdvantageFunction",
    "Agent",
    "EmpiricalAdvantageEstimation",
    "GeneralizedAdvantageEstimation",
    "InsufficientDataError",
    "MetricsLogger",
    "NoAdvantage",
    "Step",
    "StepCallback",
    "StepKind",
    "StepType",
    "Trajectory",
    "UniformReplayBuffer",
    "discounted_returns",
    "make",
    "setup_logging",
]
