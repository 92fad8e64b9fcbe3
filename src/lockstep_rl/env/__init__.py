"""Environments: pure-JAX single-lane tasks and the lockstep batched runner.

Quick start::

    from lockstep_rl.env import make

    env = make("CartPole-v1", batch_size=8, seed=0)
    step = env.current_step()            # all lanes FIRST
    step = env.step(env.action_space.sample(key))
"""

from lockstep_rl.env.base import BatchedEnvironment, Environment, EnvParams, EnvState
from lockstep_rl.env.batched import BatchedEnv
from lockstep_rl.env.cart_pole import CartPole, CartPoleParams, CartPoleState
from lockstep_rl.env.spaces import Box, Discrete, DiscreteBox, MultiBinary, MultiDiscrete, Space

# ---- Registry ----

_REGISTRY: dict[str, type[Environment]] = {
    "CartPole-v1": CartPole,
}


def register(name: str, cls: type[Environment]) -> None:
    """Register a custom environment class under *name*."""
    _REGISTRY[name] = cls


def make(
    name: str,
    batch_size: int = 1,
    *,
    seed: int = 0,
    params: EnvParams | None = None,
) -> BatchedEnv:
    """Build a registered environment wrapped in a :class:`BatchedEnv`.

    Raises:
        KeyError: If *name* is not registered.
    """
    if name not in _REGISTRY:
        available = ", ".join(sorted(_REGISTRY))
        raise KeyError(f"Unknown environment {name!r}. Available: {available}")
    return BatchedEnv(_REGISTRY[name](), batch_size, params=params, seed=seed)


__all__ = [
    # Interfaces
    "BatchedEnvironment",
    "Environment",
    "EnvParams",
    "EnvState",
    # Spaces
    "Box",
    "Discrete",
    "DiscreteBox",
    "MultiBinary",
    "MultiDiscrete",
    "Space",
    # Environments
    "BatchedEnv",
    "CartPole",
    "CartPoleParams",
    "CartPoleState",
    # Registry
    "make",
    "register",
]
