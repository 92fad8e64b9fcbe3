"""Categorical action distributions.

``Categorical`` wraps a logits array whose last axis indexes actions;
any leading axes are batch axes.  ``MultiCategorical`` combines a fixed
tuple of independent categoricals (one per action component): samples and
modes are stacked on a trailing component axis, log-probabilities and
entropies are summed over components.
"""

from __future__ import annotations

import equinox as eqx
import jax
import jax.numpy as jnp


class Categorical(eqx.Module):
    """Categorical distribution parameterised by unnormalised logits."""

    logits: jax.Array

    def __init__(self, logits: jax.Array) -> None:
        self.logits = jnp.asarray(logits, dtype=jnp.float32)

    @property
    def num_categories(self) -> int:
        return self.logits.shape[-1]

    def sample(self, key: jax.Array) -> jax.Array:
        return jax.random.categorical(key, self.logits, axis=-1).astype(jnp.int32)

    def mode(self) -> jax.Array:
        return jnp.argmax(self.logits, axis=-1).astype(jnp.int32)

    def log_prob(self, value: jax.Array) -> jax.Array:
        log_p = jax.nn.log_softmax(self.logits, axis=-1)
        idx = jnp.asarray(value, dtype=jnp.int32)[..., None]
        return jnp.take_along_axis(log_p, idx, axis=-1)[..., 0]

    def entropy(self) -> jax.Array:
        log_p = jax.nn.log_softmax(self.logits, axis=-1)
        return -jnp.sum(jnp.exp(log_p) * log_p, axis=-1)


class MultiCategorical(eqx.Module):
    """Product of independent categoricals, one per action component."""

    components: tuple[Categorical, ...]

    def __init__(self, components: tuple[Categorical, ...] | list[Categorical]) -> None:
        if not components:
            raise ValueError("MultiCategorical needs at least one component")
        self.components = tuple(components)

    def sample(self, key: jax.Array) -> jax.Array:
        keys = jax.random.split(key, len(self.components))
        return jnp.stack(
            [dist.sample(k) for dist, k in zip(self.components, keys)], axis=-1,
        )

    def mode(self) -> jax.Array:
        return jnp.stack([dist.mode() for dist in self.components], axis=-1)

    def log_prob(self, value: jax.Array) -> jax.Array:
        value = jnp.asarray(value)
        return sum(
            dist.log_prob(value[..., i]) for i, dist in enumerate(self.components)
        )

    def entropy(self) -> jax.Array:
        return sum(dist.entropy() for dist in self.components)
