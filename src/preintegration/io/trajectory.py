"""Trajectory dump of registered IMU states.

Rows follow the EuRoC ground-truth layout, so the output can be compared
with ``state_groundtruth_estimate0/data.csv`` directly:

    #timestamp, p_x, p_y, p_z, q_w, q_x, q_y, q_z, v_x, v_y, v_z,
    bg_x, bg_y, bg_z, ba_x, ba_y, ba_z
"""

from __future__ import annotations

from pathlib import Path
from typing import TextIO

import numpy as np

from ..config import DEFAULT_SOURCE
from ..imu.state import ImuState

HEADER = (
    "#timestamp [ns],p_x [m],p_y [m],p_z [m],q_w [],q_x [],q_y [],q_z [],"
    "v_x [m s^-1],v_y [m s^-1],v_z [m s^-1],"
    "bg_x [rad s^-1],bg_y [rad s^-1],bg_z [rad s^-1],"
    "ba_x [m s^-2],ba_y [m s^-2],ba_z [m s^-2]"
)
_NUM_COLUMNS = 17


class TrajectoryWriter:
    """Writes states to CSV; usable directly as an engine state callback.

    Example usage:
        with TrajectoryWriter("trajectory.csv") as writer:
            engine.add_state_callback(writer)
            ...
    """

    def __init__(self, path: str | Path) -> None:
        """Open ``path`` for writing and emit the header.

        Args:
            path: Output CSV file (parent directories are created)
        """
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file: TextIO | None = open(self._path, "w")
        self._file.write(HEADER + "\n")
        self._count = 0

    def write(self, state: ImuState) -> None:
        """Append one state as a CSV row."""
        if self._file is None:
            raise ValueError(f"Trajectory file {self._path} is closed")
        values = np.concatenate([
            state.position,
            state.orientation,
            state.velocity,
            state.gyro_bias,
            state.accel_bias,
        ])
        row = ",".join(repr(float(v)) for v in values)
        self._file.write(f"{state.timestamp_ns},{row}\n")
        self._count += 1

    def __call__(self, state: ImuState) -> None:
        self.write(state)

    def close(self) -> None:
        """Flush and close the file."""
        if self._file is not None:
            self._file.close()
            self._file = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def num_written(self) -> int:
        """Number of rows written."""
        return self._count

    def __enter__(self) -> TrajectoryWriter:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def load_trajectory(path: str | Path, source: str = DEFAULT_SOURCE) -> list[ImuState]:
    """Read states written by ``TrajectoryWriter``.

    Args:
        path: CSV file
        source: Source tag given to the loaded states

    Returns:
        States in file order

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If a row has the wrong number of columns
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Trajectory file not found: {path}")

    states = []
    with open(path, "r") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            parts = line.split(",")
            if len(parts) != _NUM_COLUMNS:
                raise ValueError(
                    f"{path}:{lineno}: expected {_NUM_COLUMNS} columns, got {len(parts)}"
                )
            values = np.array([float(x) for x in parts[1:]])
            states.append(
                ImuState(
                    int(parts[0]),
                    orientation=values[3:7],
                    position=values[0:3],
                    velocity=values[7:10],
                    gyro_bias=values[10:13],
                    accel_bias=values[13:16],
                    source=source,
                )
            )
    return states
