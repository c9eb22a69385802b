"""IMU samples, states, preintegration and the preintegration engine.

Core components:
- ImuSample / ImuState / ImuDelta: data carried between the stages
- ImuIntegrator: turns a run of samples into an ImuDelta with covariance
- ImuPreintegration: buffers samples and emits optimizer transactions
"""

from .buffer import ImuBuffer
from .delta import ImuDelta
from .integrator import ImuIntegrator, select_run
from .preintegration import EngineStatus, ImuPreintegration
from .sample import ImuSample
from .state import ImuState
from .window import SlidingWindow

__all__ = [
    # Data
    "ImuSample",
    "ImuState",
    "ImuDelta",
    # Integration
    "ImuIntegrator",
    "select_run",
    # Engine
    "ImuPreintegration",
    "EngineStatus",
    "ImuBuffer",
    "SlidingWindow",
]
