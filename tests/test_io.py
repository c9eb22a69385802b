"""Tests for ImuReader and trajectory files."""

from pathlib import Path

import numpy as np
import pytest

from preintegration import ImuPreintegration, SyntheticTrajectory
from preintegration.imu import ImuState
from preintegration.io import ImuReader, TrajectoryWriter, load_trajectory

SECOND_NS = 1_000_000_000
BASE_NS = 1403636579758555392


@pytest.fixture
def mock_dataset(tmp_path: Path) -> Path:
    """Create a mock EuRoC imu0 directory.

    Args:
        tmp_path: Pytest temporary directory fixture

    Returns:
        Path to mock mav0 directory
    """
    imu0 = tmp_path / "mav0" / "imu0"
    imu0.mkdir(parents=True)

    lines = [
        "#timestamp [ns],w_RS_S_x [rad s^-1],w_RS_S_y [rad s^-1],w_RS_S_z [rad s^-1],"
        "a_RS_S_x [m s^-2],a_RS_S_y [m s^-2],a_RS_S_z [m s^-2]"
    ]
    for i in range(5):
        t = BASE_NS + i * 5_000_000
        lines.append(f"{t},{0.01 * i},-0.02,0.03,9.0,{0.1 * i},-3.0")
    lines.insert(3, "garbage,line")
    (imu0 / "data.csv").write_text("\n".join(lines) + "\n")

    (imu0 / "sensor.yaml").write_text(
        "sensor_type: imu\n"
        "T_BS:\n"
        "  cols: 4\n"
        "  rows: 4\n"
        "  data: [1.0, 0.0, 0.0, 0.1, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1.0]\n"
        "rate_hz: 200\n"
        "gyroscope_noise_density: 1.0e-04\n"
        "accelerometer_noise_density: 2.0e-03\n"
    )
    return tmp_path / "mav0"


class TestImuReader:
    """Test suite for ImuReader."""

    def test_initialization(self, mock_dataset: Path):
        """Test that samples and calibration are loaded."""
        reader = ImuReader(mock_dataset)
        assert len(reader) == 5
        assert reader.start_timestamp == BASE_NS
        assert reader.end_timestamp == BASE_NS + 20_000_000
        np.testing.assert_allclose(reader.params.gyro_noise_density, 1.0e-4)
        np.testing.assert_allclose(reader.extrinsics.T_body_imu[0, 3], 0.1)

    def test_sample_values(self, mock_dataset: Path):
        """Test that a CSV row maps onto a sample."""
        sample = list(ImuReader(mock_dataset))[2]
        assert sample.timestamp_ns == BASE_NS + 10_000_000
        np.testing.assert_allclose(sample.angular_velocity, [0.02, -0.02, 0.03])
        np.testing.assert_allclose(sample.linear_acceleration, [9.0, 0.2, -3.0])

    def test_get_samples_between(self, mock_dataset: Path):
        """Test the half-open time range query."""
        reader = ImuReader(mock_dataset)
        run = reader.get_samples_between(BASE_NS + 5_000_000, BASE_NS + 15_000_000)
        assert [s.timestamp_ns - BASE_NS for s in run] == [5_000_000, 10_000_000]

    def test_param_overrides(self, mock_dataset: Path):
        """Test that reader overrides reach the parameters."""
        reader = ImuReader(mock_dataset, window_size=4, source="EUROC")
        assert reader.params.window_size == 4
        assert reader.params.source == "EUROC"

    def test_missing_sensor_yaml(self, mock_dataset: Path):
        """Test that defaults are used without sensor.yaml."""
        (mock_dataset / "imu0" / "sensor.yaml").unlink()
        reader = ImuReader(mock_dataset)
        np.testing.assert_allclose(reader.params.gyro_noise_density, 1.6968e-04)
        np.testing.assert_array_equal(reader.extrinsics.T_body_imu, np.eye(4))

    def test_missing_data(self, tmp_path: Path):
        """Test that initialization fails without imu0/data.csv."""
        with pytest.raises(FileNotFoundError, match="IMU data not found"):
            ImuReader(tmp_path)

    def test_feeds_engine(self, mock_dataset: Path):
        """Test the reader output drives the engine end to end."""
        reader = ImuReader(mock_dataset)
        engine = ImuPreintegration(reader.params, reader.extrinsics)
        for sample in reader:
            assert engine.add_sample(sample)
        engine.set_start(reader.start_timestamp)
        tx = engine.register_factor(reader.end_timestamp)
        assert len(tx.added_variables) == 10


class TestTrajectoryFiles:
    """Test suite for TrajectoryWriter and load_trajectory."""

    def test_write_and_load(self, tmp_path: Path):
        """Test that written states load back unchanged."""
        states = [
            ImuState(0),
            ImuState(
                SECOND_NS,
                orientation=[0.5, 0.5, 0.5, 0.5],
                position=[1.0, -2.0, 3.5],
                velocity=[0.1, 0.2, 0.3],
                gyro_bias=[1e-3, 2e-3, 3e-3],
                accel_bias=[-0.01, 0.0, 0.02],
            ),
        ]
        path = tmp_path / "out" / "trajectory.csv"
        with TrajectoryWriter(path) as writer:
            for state in states:
                writer.write(state)
            assert writer.num_written == 2

        loaded = load_trajectory(path)
        assert [s.timestamp_ns for s in loaded] == [0, SECOND_NS]
        for original, restored in zip(states, loaded):
            np.testing.assert_array_equal(restored.as_vector(), original.as_vector())

    def test_header(self, tmp_path: Path):
        """Test that the file starts with a comment header."""
        path = tmp_path / "trajectory.csv"
        TrajectoryWriter(path).close()
        assert path.read_text().startswith("#timestamp [ns]")

    def test_write_after_close(self, tmp_path: Path):
        """Test that a closed writer refuses rows."""
        writer = TrajectoryWriter(tmp_path / "trajectory.csv")
        writer.close()
        with pytest.raises(ValueError):
            writer.write(ImuState(0))

    def test_as_engine_callback(
        self, tmp_path: Path, loaded_engine: ImuPreintegration, trajectory: SyntheticTrajectory
    ):
        """Test dumping every registered state from the engine."""
        path = tmp_path / "trajectory.csv"
        with TrajectoryWriter(path) as writer:
            loaded_engine.add_state_callback(writer)
            for k in range(1, 4):
                loaded_engine.register_factor(k * SECOND_NS)

        loaded = load_trajectory(path)
        assert [s.timestamp_ns for s in loaded] == [0, SECOND_NS, 2 * SECOND_NS, 3 * SECOND_NS]
        np.testing.assert_allclose(
            loaded[-1].position, trajectory.position(3 * SECOND_NS), atol=1e-3
        )

    def test_load_bad_row(self, tmp_path: Path):
        """Test that a short row is reported."""
        path = tmp_path / "trajectory.csv"
        path.write_text("#header\n0,1.0,2.0\n")
        with pytest.raises(ValueError, match="columns"):
            load_trajectory(path)

    def test_load_missing(self, tmp_path: Path):
        """Test loading a missing file."""
        with pytest.raises(FileNotFoundError):
            load_trajectory(tmp_path / "missing.csv")
