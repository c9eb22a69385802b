"""IMU preintegration front end for factor-graph state estimation."""

__version__ = "0.1.0"

# Re-export main classes for convenient imports
from .backend import (
    ConstraintKind,
    ImuBias,
    ImuStateConstraint,
    ImuTransaction,
    ImuTransactionBuilder,
    Solution,
    Variable,
    VariableKind,
    solution_from_variables,
)
from .config import DEFAULT_SOURCE, ImuExtrinsics, ImuParams
from .errors import (
    BufferOverflowError,
    DataError,
    InsufficientDataError,
    NumericalError,
    OutOfOrderSampleError,
    PreconditionError,
    PreintegrationError,
    RangeError,
)
from .imu import (
    EngineStatus,
    ImuDelta,
    ImuIntegrator,
    ImuPreintegration,
    ImuSample,
    ImuState,
)
from .io import ImuReader, TrajectoryWriter, load_trajectory
from .pose import SE3
from .sim import SyntheticTrajectory

__all__ = [
    "__version__",
    # Configuration
    "ImuParams",
    "ImuExtrinsics",
    "DEFAULT_SOURCE",
    # IMU
    "ImuSample",
    "ImuState",
    "ImuDelta",
    "ImuIntegrator",
    "ImuPreintegration",
    "EngineStatus",
    # Backend
    "Variable",
    "VariableKind",
    "ConstraintKind",
    "ImuStateConstraint",
    "ImuBias",
    "ImuTransaction",
    "ImuTransactionBuilder",
    "Solution",
    "solution_from_variables",
    # Pose
    "SE3",
    # I/O
    "ImuReader",
    "TrajectoryWriter",
    "load_trajectory",
    # Simulation
    "SyntheticTrajectory",
    # Errors
    "PreintegrationError",
    "DataError",
    "OutOfOrderSampleError",
    "InsufficientDataError",
    "BufferOverflowError",
    "RangeError",
    "PreconditionError",
    "NumericalError",
]
