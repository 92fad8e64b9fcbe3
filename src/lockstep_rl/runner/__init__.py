"""Training runners for lockstep_rl algorithms.

Off-policy DQN uses a hybrid loop: a Python outer loop owns the mutable
replay buffer and logging, while acting and gradient steps run as
``jax.jit``-compiled pure functions.

Evaluation is shared: ``evaluate`` runs any :class:`~lockstep_rl.agent.base.Agent`
greedily on a batched environment.
"""

from lockstep_rl.runner.callbacks import EpisodeReturnTracker
from lockstep_rl.runner.config import RunnerConfig
from lockstep_rl.runner.dqn_agent import AgentPhase, DQNAgent
from lockstep_rl.runner.evaluator import EvalMetrics, evaluate
from lockstep_rl.runner.train_dqn import DQNTrainResult, train_dqn

__all__ = [
    # Config
    "RunnerConfig",
    # Callbacks
    "EpisodeReturnTracker",
    # Evaluator
    "EvalMetrics",
    "evaluate",
    # DQN (Hybrid)
    "AgentPhase",
    "DQNAgent",
    "DQNTrainResult",
    "train_dqn",
]
