"""JAX-native action and observation spaces.

Spaces are immutable Equinox modules whose fields are all static, so a
space can be passed straight into a jitted function.  An optional
``batch_size`` adds a leading lane axis: ``Discrete(2, batch_size=8)``
samples actions of shape ``(8,)`` and only contains arrays of that shape.

Sampling takes an explicit PRNG key.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import equinox as eqx
import jax
import jax.numpy as jnp
import numpy as np

from lockstep_rl.distributions import Categorical, MultiCategorical


@runtime_checkable
class Space(Protocol):
    """Capability set shared by every space."""

    @property
    def shape(self) -> tuple[int, ...]: ...

    def sample(self, key: jax.Array) -> jax.Array: ...

    def contains(self, x: jax.Array) -> bool: ...


def _batch_shape(batch_size: int | None) -> tuple[int, ...]:
    return () if batch_size is None else (batch_size,)


class Discrete(eqx.Module):
    """Integers ``{0, 1, ..., n-1}``, optionally one per lane."""

    n: int = eqx.field(static=True)
    batch_size: int | None = eqx.field(static=True, default=None)

    def __check_init__(self) -> None:
        if self.n <= 0:
            raise ValueError(f"Discrete space needs n > 0, got {self.n}")

    @property
    def distribution(self) -> Categorical:
        """Uniform categorical over the ``n`` values."""
        return Categorical(jnp.zeros((*_batch_shape(self.batch_size), self.n)))

    def sample(self, key: jax.Array) -> jax.Array:
        return jax.random.randint(
            key, shape=_batch_shape(self.batch_size), minval=0, maxval=self.n,
        )

    def contains(self, x: jax.Array) -> bool:
        x = np.asarray(x)
        if x.shape != self.shape:
            return False
        return bool(np.all((x >= 0) & (x < self.n) & (x == np.floor(x))))

    @property
    def shape(self) -> tuple[int, ...]:
        return _batch_shape(self.batch_size)

    @property
    def dtype(self) -> jnp.dtype:
        return jnp.int32

    def __repr__(self) -> str:
        return f"Discrete({self.n})"


class MultiDiscrete(eqx.Module):
    """Vectors whose ``i``-th component lies in ``{0, ..., sizes[i]-1}``."""

    sizes: tuple[int, ...] = eqx.field(static=True, converter=tuple)
    batch_size: int | None = eqx.field(static=True, default=None)

    def __check_init__(self) -> None:
        if not self.sizes or any(s <= 0 for s in self.sizes):
            raise ValueError(f"MultiDiscrete sizes must be positive, got {self.sizes}")

    @property
    def distribution(self) -> MultiCategorical:
        batch = _batch_shape(self.batch_size)
        return MultiCategorical(
            tuple(Categorical(jnp.zeros((*batch, size))) for size in self.sizes)
        )

    def sample(self, key: jax.Array) -> jax.Array:
        return self.distribution.sample(key)

    def contains(self, x: jax.Array) -> bool:
        x = np.asarray(x)
        if x.shape != self.shape:
            return False
        upper = np.asarray(self.sizes)
        return bool(np.all((x >= 0) & (x < upper) & (x == np.floor(x))))

    @property
    def shape(self) -> tuple[int, ...]:
        return (*_batch_shape(self.batch_size), len(self.sizes))

    @property
    def dtype(self) -> jnp.dtype:
        return jnp.int32

    def __repr__(self) -> str:
        return f"MultiDiscrete({', '.join(str(s) for s in self.sizes)})"


class MultiBinary(eqx.Module):
    """Vectors of ``size`` independent bits."""

    size: int = eqx.field(static=True)
    batch_size: int | None = eqx.field(static=True, default=None)

    def __check_init__(self) -> None:
        if self.size <= 0:
            raise ValueError(f"MultiBinary space needs size > 0, got {self.size}")

    def sample(self, key: jax.Array) -> jax.Array:
        return jax.random.bernoulli(key, 0.5, shape=self.shape).astype(jnp.int32)

    def contains(self, x: jax.Array) -> bool:
        x = np.asarray(x)
        if x.shape != self.shape:
            return False
        return bool(np.all((x == 0) | (x == 1)))

    @property
    def shape(self) -> tuple[int, ...]:
        return (*_batch_shape(self.batch_size), self.size)

    @property
    def dtype(self) -> jnp.dtype:
        return jnp.int32

    def __repr__(self) -> str:
        return f"MultiBinary({self.size})"


class Box(eqx.Module):
    """Bounded continuous space with per-element bounds.

    Bounds are stored as static tuples so the space stays hashable.
    """

    _low: tuple[float, ...] = eqx.field(static=True)
    _high: tuple[float, ...] = eqx.field(static=True)
    _shape: tuple[int, ...] = eqx.field(static=True)

    def __init__(
        self,
        low: float | jax.Array,
        high: float | jax.Array,
        shape: tuple[int, ...] | None = None,
    ) -> None:
        low_arr = np.asarray(low, dtype=np.float32)
        high_arr = np.asarray(high, dtype=np.float32)
        if shape is not None:
            low_arr = np.broadcast_to(low_arr, shape)
            high_arr = np.broadcast_to(high_arr, shape)
        if low_arr.shape != high_arr.shape:
            raise ValueError(
                f"low and high must have the same shape, got {low_arr.shape} and {high_arr.shape}"
            )
        self._low = tuple(float(v) for v in low_arr.ravel())
        self._high = tuple(float(v) for v in high_arr.ravel())
        self._shape = tuple(int(d) for d in low_arr.shape)

    @property
    def low(self) -> jax.Array:
        return jnp.array(self._low, dtype=jnp.float32).reshape(self._shape)

    @property
    def high(self) -> jax.Array:
        return jnp.array(self._high, dtype=jnp.float32).reshape(self._shape)

    def sample(self, key: jax.Array) -> jax.Array:
        return jax.random.uniform(key, shape=self._shape, minval=self.low, maxval=self.high)

    def contains(self, x: jax.Array) -> bool:
        x = np.asarray(x)
        if x.shape != self._shape:
            return False
        low = np.asarray(self._low, dtype=np.float32).reshape(self._shape)
        high = np.asarray(self._high, dtype=np.float32).reshape(self._shape)
        return bool(np.all((x >= low) & (x <= high)))

    @property
    def shape(self) -> tuple[int, ...]:
        return self._shape

    @property
    def dtype(self) -> jnp.dtype:
        return jnp.float32

    def __repr__(self) -> str:
        return f"Box({', '.join(str(d) for d in self._shape)})"


class DiscreteBox(eqx.Module):
    """Integer arrays with inclusive per-element bounds.

    Like :class:`Box` but over integers: ``DiscreteBox(0, 255, shape=(84, 84))``
    for raw pixel frames.
    """

    _low: tuple[int, ...] = eqx.field(static=True)
    _high: tuple[int, ...] = eqx.field(static=True)
    _shape: tuple[int, ...] = eqx.field(static=True)

    def __init__(
        self,
        low: int | jax.Array,
        high: int | jax.Array,
        shape: tuple[int, ...] | None = None,
    ) -> None:
        low_arr = np.asarray(low, dtype=np.int64)
        high_arr = np.asarray(high, dtype=np.int64)
        if shape is not None:
            low_arr = np.broadcast_to(low_arr, shape)
            high_arr = np.broadcast_to(high_arr, shape)
        if low_arr.shape != high_arr.shape:
            raise ValueError(
                f"low and high must have the same shape, got {low_arr.shape} and {high_arr.shape}"
            )
        if np.any(low_arr > high_arr):
            raise ValueError("low must not exceed high")
        self._low = tuple(int(v) for v in low_arr.ravel())
        self._high = tuple(int(v) for v in high_arr.ravel())
        self._shape = tuple(int(d) for d in low_arr.shape)

    @property
    def low(self) -> jax.Array:
        return jnp.array(self._low, dtype=jnp.int32).reshape(self._shape)

    @property
    def high(self) -> jax.Array:
        return jnp.array(self._high, dtype=jnp.int32).reshape(self._shape)

    def sample(self, key: jax.Array) -> jax.Array:
        return jax.random.randint(
            key, shape=self._shape, minval=self.low, maxval=self.high + 1,
        )

    def contains(self, x: jax.Array) -> bool:
        x = np.asarray(x)
        if x.shape != self._shape:
            return False
        low = np.asarray(self._low).reshape(self._shape)
        high = np.asarray(self._high).reshape(self._shape)
        return bool(np.all((x >= low) & (x <= high) & (x == np.floor(x))))

    @property
    def shape(self) -> tuple[int, ...]:
        return self._shape

    @property
    def dtype(self) -> jnp.dtype:
        return jnp.int32

    def __repr__(self) -> str:
        return f"DiscreteBox({', '.join(str(d) for d in self._shape)})"
