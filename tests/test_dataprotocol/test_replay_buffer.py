"""Tests for the per-lane uniform replay buffer."""

import jax.numpy as jnp
import numpy as np
import pytest

from lockstep_rl.dataprotocol import InsufficientDataError, UniformReplayBuffer
from lockstep_rl.types import StepKind, Trajectory


def _traj(i: int, batch_size: int = 1, state=()) -> Trajectory:
    """Entry ``i``; lane ``l`` gets action ``10 * i + l``."""
    lanes = jnp.arange(batch_size)
    return Trajectory(
        step_kind=StepKind.mid(batch_size),
        observation=jnp.stack([jnp.full(batch_size, float(i)), lanes.astype(jnp.float32)], axis=-1),
        action=(10 * i + lanes).astype(jnp.int32),
        reward=jnp.full(batch_size, float(i)),
        state=state,
    )


class TestRecord:
    def test_sizes_grow_per_lane(self):
        buf = UniformReplayBuffer(batch_size=2, max_length=4)
        assert len(buf) == 0
        buf.record(_traj(1, 2))
        buf.record(_traj(2, 2))
        assert buf.lane_sizes.tolist() == [2, 2]
        assert len(buf) == 4

    def test_size_capped_at_max_length(self):
        buf = UniformReplayBuffer(batch_size=1, max_length=3)
        for i in range(1, 6):
            buf.record(_traj(i))
        assert buf.lane_sizes.tolist() == [3]

    def test_lane_mask(self):
        buf = UniformReplayBuffer(batch_size=2, max_length=4)
        buf.record(_traj(1, 2), lanes=np.array([True, False]))
        buf.record(_traj(2, 2), lanes=np.array([True, False]))
        assert buf.lane_sizes.tolist() == [2, 0]

        window = buf.sample_batch(batch_size=16, step_count=2)
        assert np.all(np.asarray(window.action[0]) == 10)
        assert np.all(np.asarray(window.action[1]) == 20)

    def test_bad_mask_shape(self):
        buf = UniformReplayBuffer(batch_size=2, max_length=4)
        with pytest.raises(ValueError):
            buf.record(_traj(1, 2), lanes=np.array([True]))

    def test_wrong_lane_axis(self):
        buf = UniformReplayBuffer(batch_size=3, max_length=4)
        with pytest.raises(ValueError):
            buf.record(_traj(1, 2))

    @pytest.mark.parametrize(("batch_size", "max_length"), [(0, 4), (2, 0)])
    def test_invalid_construction(self, batch_size, max_length):
        with pytest.raises(ValueError):
            UniformReplayBuffer(batch_size=batch_size, max_length=max_length)


class TestSample:
    def test_oldest_entries_evicted(self):
        buf = UniformReplayBuffer(batch_size=1, max_length=3)
        for i in range(1, 6):
            buf.record(_traj(i))
        window = buf.sample_batch(batch_size=1, step_count=3)
        assert window.action[:, 0].tolist() == [30, 40, 50]
        assert window.reward[:, 0].tolist() == [3.0, 4.0, 5.0]

    def test_chronological_before_wrap(self):
        buf = UniformReplayBuffer(batch_size=1, max_length=5)
        buf.record(_traj(1))
        buf.record(_traj(2))
        window = buf.sample_batch(batch_size=4, step_count=2)
        assert np.all(np.asarray(window.action[0]) == 10)
        assert np.all(np.asarray(window.action[1]) == 20)

    def test_time_major_shapes(self):
        buf = UniformReplayBuffer(batch_size=3, max_length=8)
        for i in range(4):
            buf.record(_traj(i, 3))
        window = buf.sample_batch(batch_size=5, step_count=2)
        assert window.observation.shape == (2, 5, 2)
        assert window.action.shape == (2, 5)
        assert window.reward.shape == (2, 5)
        assert window.step_kind.shape == (2, 5)
        assert isinstance(window.action, jnp.ndarray)

    def test_windows_are_contiguous_and_single_lane(self):
        buf = UniformReplayBuffer(batch_size=2, max_length=4)
        for i in range(1, 7):
            buf.record(_traj(i, 2))
        window = buf.sample_batch(batch_size=64, step_count=3)
        actions = np.asarray(window.action)
        lanes = actions % 10
        ticks = actions // 10
        assert np.all(lanes == lanes[0])
        assert np.all(np.diff(ticks, axis=0) == 1)
        # Only entries 3..6 survive in a ring of 4.
        assert ticks.min() >= 3

    def test_uniform_over_windows(self):
        buf = UniformReplayBuffer(batch_size=2, max_length=10, seed=1)
        for i in range(10):
            buf.record(_traj(i, 2))
        window = buf.sample_batch(batch_size=4000, step_count=1)
        counts = np.bincount(np.asarray(window.action[0]), minlength=92)
        counts = counts[counts > 0]
        assert len(counts) == 20
        assert counts.min() > 120
        assert counts.max() < 280

    def test_agent_state_pytree_round_trip(self):
        buf = UniformReplayBuffer(batch_size=2, max_length=4)
        for i in range(3):
            buf.record(_traj(i, 2, state={"h": jnp.full((2, 3), float(i))}))
        window = buf.sample_batch(batch_size=6, step_count=2)
        assert window.state["h"].shape == (2, 6, 3)
        assert jnp.allclose(window.state["h"][1] - window.state["h"][0], 1.0)


class TestInsufficientData:
    def test_empty_buffer(self):
        buf = UniformReplayBuffer(batch_size=2, max_length=4)
        assert not buf.can_sample(1)
        with pytest.raises(InsufficientDataError):
            buf.sample_batch(batch_size=1, step_count=1)

    def test_window_longer_than_data(self):
        buf = UniformReplayBuffer(batch_size=1, max_length=5)
        buf.record(_traj(1))
        buf.record(_traj(2))
        assert buf.can_sample(2)
        assert not buf.can_sample(3)
        with pytest.raises(InsufficientDataError):
            buf.sample_batch(batch_size=1, step_count=3)

    def test_is_runtime_error(self):
        assert issubclass(InsufficientDataError, RuntimeError)

    @pytest.mark.parametrize("step_count", [0, 6])
    def test_invalid_step_count(self, step_count):
        buf = UniformReplayBuffer(batch_size=1, max_length=5)
        buf.record(_traj(1))
        with pytest.raises(ValueError):
            buf.sample_batch(batch_size=1, step_count=step_count)
