from lockstep_rl.algorithms.dqn.agent import DQN, current_epsilon, td_loss
from lockstep_rl.algorithms.dqn.config import DQNConfig
from lockstep_rl.algorithms.dqn.network import QNetwork, soft_update
from lockstep_rl.algorithms.dqn.types import DQNMetrics, DQNState

__all__ = [
    "DQN",
    "DQNConfig",
    "DQNMetrics",
    "DQNState",
    "QNetwork",
    "current_epsilon",
    "soft_update",
    "td_loss",
]
