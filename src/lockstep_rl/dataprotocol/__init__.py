"""Experience storage for batched environments.

    - UniformReplayBuffer: per-lane numpy ring buffer with uniform
      windowed sampling returning jax arrays
    - InsufficientDataError: raised when no lane holds a full window
"""

from lockstep_rl.dataprotocol.replay_buffer import InsufficientDataError, UniformReplayBuffer

__all__ = [
    "InsufficientDataError",
    "UniformReplayBuffer",
]
