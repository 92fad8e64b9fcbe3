"""Q-network and target-network maintenance, implemented with Equinox."""

from __future__ import annotations

import equinox as eqx
import jax
import optax


class QNetwork(eqx.Module):
    """MLP Q-network: one observation -> Q(s, a) for each discrete action."""

    layers: list

    def __init__(
        self,
        obs_dim: int,
        n_actions: int,
        hidden_sizes: tuple[int, ...] = (128, 128),
        *,
        key: jax.Array,
    ) -> None:
        dims = [obs_dim, *hidden_sizes, n_actions]
        keys = jax.random.split(key, len(dims) - 1)
        self.layers = [
            eqx.nn.Linear(d_in, d_out, key=k)
            for d_in, d_out, k in zip(dims[:-1], dims[1:], keys)
        ]

    def __call__(self, x: jax.Array) -> jax.Array:
        x = x.reshape(-1)
        for layer in self.layers[:-1]:
            x = jax.nn.relu(layer(x))
        return self.layers[-1](x)


def soft_update(target: eqx.Module, online: eqx.Module, forget_factor: float) -> eqx.Module:
    """Exponential moving average of the online network into the target.

    Every array leaf becomes
    ``forget_factor * target + (1 - forget_factor) * online``;
    ``forget_factor=1`` returns the target unchanged and ``0`` copies the
    online network.
    """
    if not 0.0 <= forget_factor <= 1.0:
        raise ValueError(f"forget_factor must be in [0, 1], got {forget_factor}")
    target_arrays, target_static = eqx.partition(target, eqx.is_array)
    online_arrays = eqx.filter(online, eqx.is_array)
    blended = optax.incremental_update(
        new_tensors=online_arrays,
        old_tensors=target_arrays,
        step_size=1.0 - forget_factor,
    )
    return eqx.combine(blended, target_static)
