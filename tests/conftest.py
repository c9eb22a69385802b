"""Shared fixtures for the preintegration tests."""

import pytest

from preintegration import ImuParams, ImuPreintegration, SyntheticTrajectory
from preintegration.imu import ImuSample

SECOND_NS = 1_000_000_000


@pytest.fixture
def trajectory() -> SyntheticTrajectory:
    """Smooth rotating/translating trajectory starting at t = 0."""
    return SyntheticTrajectory()


@pytest.fixture
def samples(trajectory: SyntheticTrajectory) -> list[ImuSample]:
    """20 s of noise-free 100 Hz samples, including one at t = 20 s."""
    return trajectory.generate_samples(0, 20 * SECOND_NS, rate_hz=100.0)


@pytest.fixture
def zero_noise_params() -> ImuParams:
    """Noise-free IMU parameters with default gravity."""
    return ImuParams.zero_noise()


@pytest.fixture
def engine(zero_noise_params: ImuParams) -> ImuPreintegration:
    """Fresh, unstarted engine."""
    return ImuPreintegration(zero_noise_params)


@pytest.fixture
def loaded_engine(
    engine: ImuPreintegration, samples: list[ImuSample], trajectory: SyntheticTrajectory
) -> ImuPreintegration:
    """Engine with all samples buffered and started at the true state at t = 0."""
    for sample in samples:
        engine.add_sample(sample)
    truth = trajectory.state(0)
    engine.set_start(0, truth.orientation, truth.position, truth.velocity)
    return engine
