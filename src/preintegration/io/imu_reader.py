"""EuRoC IMU data reader.

Loads IMU samples (gyroscope and accelerometer) from EuRoC dataset format,
together with the noise model and extrinsics from ``imu0/sensor.yaml``.
"""

from __future__ import annotations

import bisect
import logging
from collections.abc import Iterator
from pathlib import Path

import numpy as np

from ..config import ImuExtrinsics, ImuParams
from ..imu.sample import ImuSample

logger = logging.getLogger(__name__)


class ImuReader:
    """Reader for EuRoC IMU data.

    Loads samples from imu0/data.csv and calibration from imu0/sensor.yaml.

    Example usage:
        reader = ImuReader("data/euroc/MH_01_easy/mav0")
        engine = ImuPreintegration(reader.params, reader.extrinsics)
        for sample in reader.get_samples_between(t_start, t_end):
            engine.add_sample(sample)
    """

    def __init__(self, dataset_path: str | Path, **param_overrides) -> None:
        """Initialize IMU reader.

        Args:
            dataset_path: Path to EuRoC mav0 directory
            **param_overrides: ImuParams fields that take precedence over
                sensor.yaml (e.g. window_size, source)
        """
        self._dataset_path = Path(dataset_path)
        self._imu_data_path = self._dataset_path / "imu0" / "data.csv"
        self._imu_sensor_path = self._dataset_path / "imu0" / "sensor.yaml"

        if not self._imu_data_path.exists():
            raise FileNotFoundError(
                f"IMU data not found: {self._imu_data_path}\n"
                f"Expected EuRoC format with imu0/data.csv"
            )

        # Load calibration
        if self._imu_sensor_path.exists():
            self._params = ImuParams.from_yaml(self._imu_sensor_path, **param_overrides)
            self._extrinsics = ImuExtrinsics.from_yaml(self._imu_sensor_path)
        else:
            logger.warning(
                "%s not found, using default IMU noise model", self._imu_sensor_path
            )
            self._params = ImuParams(**param_overrides)
            self._extrinsics = ImuExtrinsics()

        # Load all samples into memory (EuRoC has ~37k samples, ~3MB)
        self._samples: list[ImuSample] = []
        self._timestamps: list[int] = []  # For fast binary search
        self._load_samples()

    def _load_samples(self) -> None:
        """Load all IMU samples from CSV file."""
        skipped = 0
        with open(self._imu_data_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue

                parts = line.split(",")
                if len(parts) < 7:
                    skipped += 1
                    continue

                try:
                    timestamp_ns = int(parts[0])
                    values = [float(x) for x in parts[1:7]]
                except ValueError:
                    skipped += 1
                    continue

                self._samples.append(
                    ImuSample(
                        timestamp_ns=timestamp_ns,
                        angular_velocity=np.array(values[0:3]),
                        linear_acceleration=np.array(values[3:6]),
                    )
                )
                self._timestamps.append(timestamp_ns)

        if skipped:
            logger.warning("Skipped %d malformed lines in %s", skipped, self._imu_data_path)

    def get_samples_between(self, start_ns: int, end_ns: int) -> list[ImuSample]:
        """Get all samples between two timestamps (inclusive on start, exclusive on end).

        Args:
            start_ns: Start timestamp in nanoseconds (inclusive)
            end_ns: End timestamp in nanoseconds (exclusive)

        Returns:
            List of ImuSample objects in the time range
        """
        if not self._timestamps:
            return []

        start_idx = bisect.bisect_left(self._timestamps, start_ns)
        end_idx = bisect.bisect_left(self._timestamps, end_ns)
        return self._samples[start_idx:end_idx]

    @property
    def params(self) -> ImuParams:
        """Noise model from sensor.yaml (or defaults)."""
        return self._params

    @property
    def extrinsics(self) -> ImuExtrinsics:
        """IMU-to-body transform from sensor.yaml (or identity)."""
        return self._extrinsics

    @property
    def start_timestamp(self) -> int | None:
        """First IMU timestamp in nanoseconds."""
        return self._timestamps[0] if self._timestamps else None

    @property
    def end_timestamp(self) -> int | None:
        """Last IMU timestamp in nanoseconds."""
        return self._timestamps[-1] if self._timestamps else None

    def __iter__(self) -> Iterator[ImuSample]:
        """Iterate samples in file order."""
        return iter(self._samples)

    def __len__(self) -> int:
        """Number of IMU samples."""
        return len(self._samples)
