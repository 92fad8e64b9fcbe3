"""Pure-JAX CartPole.

Physics follow Barto, Sutton & Anderson (1983): a pole hinged on a cart
that is pushed left or right with a fixed force, integrated with explicit
Euler steps.
"""

from __future__ import annotations

import math
from typing import Any

import equinox as eqx
import jax
import jax.numpy as jnp

from lockstep_rl.env.base import Environment, EnvParams, EnvState
from lockstep_rl.env.spaces import Box, Discrete


class CartPoleState(EnvState):
    position: jax.Array
    velocity: jax.Array
    angle: jax.Array
    angular_velocity: jax.Array


class CartPoleParams(EnvParams):
    gravity: float = eqx.field(static=True, default=9.8)
    cart_mass: float = eqx.field(static=True, default=1.0)
    pole_mass: float = eqx.field(static=True, default=0.1)
    half_length: float = eqx.field(static=True, default=0.5)
    force_magnitude: float = eqx.field(static=True, default=10.0)
    tau: float = eqx.field(static=True, default=0.02)
    angle_threshold: float = eqx.field(static=True, default=12 * 2 * math.pi / 360)
    position_threshold: float = eqx.field(static=True, default=2.4)
    init_range: float = eqx.field(static=True, default=0.05)
    max_steps: int | None = eqx.field(static=True, default=500)


class CartPole(Environment):
    """Keep the pole upright by pushing the cart.

    Observation: ``[position, velocity, angle, angular_velocity]``
    Actions: ``0`` (push left) or ``1`` (push right)
    Reward: ``+1`` per tick.

    The episode ends when the pole leans past 12 degrees, the cart leaves
    ``[-2.4, 2.4]``, or after ``max_steps`` ticks (``None`` disables the
    time limit).
    """

    def default_params(self) -> CartPoleParams:
        return CartPoleParams()

    def reset(
        self,
        key: jax.Array,
        params: CartPoleParams,
    ) -> tuple[jax.Array, CartPoleState]:
        init = jax.random.uniform(
            key, shape=(4,), minval=-params.init_range, maxval=params.init_range,
        )
        state = CartPoleState(
            position=init[0],
            velocity=init[1],
            angle=init[2],
            angular_velocity=init[3],
            time=jnp.int32(0),
        )
        return self._observe(state), state

    def step(
        self,
        key: jax.Array,
        state: CartPoleState,
        action: jax.Array,
        params: CartPoleParams,
    ) -> tuple[jax.Array, CartPoleState, jax.Array, jax.Array, dict[str, Any]]:
        total_mass = params.cart_mass + params.pole_mass
        pole_mass_length = params.pole_mass * params.half_length

        force = (2.0 * action.astype(jnp.float32) - 1.0) * params.force_magnitude
        cos_a = jnp.cos(state.angle)
        sin_a = jnp.sin(state.angle)

        temp = (force + pole_mass_length * state.angular_velocity ** 2 * sin_a) / total_mass
        angular_acc = (params.gravity * sin_a - cos_a * temp) / (
            params.half_length * (4.0 / 3.0 - params.pole_mass * cos_a ** 2 / total_mass)
        )
        acc = temp - pole_mass_length * angular_acc * cos_a / total_mass

        new_state = CartPoleState(
            position=state.position + params.tau * state.velocity,
            velocity=state.velocity + params.tau * acc,
            angle=state.angle + params.tau * state.angular_velocity,
            angular_velocity=state.angular_velocity + params.tau * angular_acc,
            time=state.time + 1,
        )

        terminated = (jnp.abs(new_state.position) > params.position_threshold) | (
            jnp.abs(new_state.angle) > params.angle_threshold
        )
        if params.max_steps is None:
            truncated = jnp.bool_(False)
        else:
            truncated = new_state.time >= params.max_steps
        done = terminated | truncated

        info = {"terminated": terminated, "truncated": truncated}
        return self._observe(new_state), new_state, jnp.float32(1.0), done, info

    def observation_space(self, params: CartPoleParams) -> Box:
        inf = float(jnp.finfo(jnp.float32).max)
        high = (
            params.position_threshold * 2,
            inf,
            params.angle_threshold * 2,
            inf,
        )
        return Box(low=tuple(-h for h in high), high=high)

    def action_space(self, params: CartPoleParams) -> Discrete:
        return Discrete(n=2)

    @staticmethod
    def _observe(state: CartPoleState) -> jax.Array:
        return jnp.stack(
            [state.position, state.velocity, state.angle, state.angular_velocity]
        ).astype(jnp.float32)
