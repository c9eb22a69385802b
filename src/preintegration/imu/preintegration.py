"""IMU preintegration engine.

Buffers an asynchronous stream of IMU samples and, at keyframe times chosen
by the caller, turns the buffered run into a preintegrated delta, predicts
the new IMU state and packages both as a transaction for the optimizer.

Lifecycle:
    UNINITIALIZED --set_start--> ACTIVE --register_factor--> ACTIVE ...
    ACTIVE --stop--> STOPPED

Every public operation takes a single coarse lock, so samples may be added
from a different thread than the one registering factors or querying poses.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import Enum

import numpy as np

from ..backend.transaction import ImuBias, ImuTransaction, ImuTransactionBuilder
from ..backend.variables import Solution
from ..config import ImuExtrinsics, ImuParams
from ..errors import (
    InsufficientDataError,
    NumericalError,
    OutOfOrderSampleError,
    PreconditionError,
    RangeError,
)
from ..lie import quat_multiply, quat_normalize
from ..pose import SE3
from .buffer import ImuBuffer
from .delta import ImuDelta
from .integrator import ImuIntegrator
from .sample import ImuSample
from .state import ImuState
from .window import SlidingWindow

logger = logging.getLogger(__name__)

StateCallback = Callable[[ImuState], None]


class EngineStatus(Enum):
    """Lifecycle of the preintegration engine."""

    UNINITIALIZED = "UNINITIALIZED"
    ACTIVE = "ACTIVE"
    STOPPED = "STOPPED"


class ImuPreintegration:
    """Preintegrates buffered IMU samples between keyframe states.

    The engine owns its sample buffer and the current ``ImuState``. Deltas,
    states and transactions it hands out are copies; optimizer results flow
    back only through ``update_states``.

    Example usage:
        engine = ImuPreintegration(ImuParams.from_yaml("imu0/sensor.yaml"))
        for sample in reader:
            engine.add_sample(sample)
        engine.set_start(t0_ns)
        transaction = engine.register_factor(t1_ns)
    """

    def __init__(
        self,
        params: ImuParams,
        extrinsics: ImuExtrinsics | None = None,
    ) -> None:
        """Initialize engine.

        Args:
            params: IMU noise model and engine settings
            extrinsics: IMU-to-body transform (default: identity)
        """
        self._params = params
        self._extrinsics = extrinsics if extrinsics is not None else ImuExtrinsics()
        self._integrator = ImuIntegrator(params)

        max_duration_ns = (
            None
            if params.max_buffer_duration_s is None
            else int(round(params.max_buffer_duration_s * 1e9))
        )
        self._buffer = ImuBuffer(max_duration_ns=max_duration_ns)
        self._window: SlidingWindow[ImuState] = SlidingWindow(params.window_size)

        # State
        self._status = EngineStatus.UNINITIALIZED
        self._current_state: ImuState | None = None
        self._carry_over_bias = ImuBias(gyro=np.zeros(3), accel=np.zeros(3))
        self._prior_emitted = False
        self._epoch = 0
        self._callbacks: list[StateCallback] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Sample input
    # ------------------------------------------------------------------

    def add_sample(self, sample: ImuSample) -> bool:
        """Append a sample to the buffer.

        Samples that are not strictly newer than the last accepted one, or
        that hold non-finite values, are dropped (and logged). Before
        ``set_start`` the buffer evicts its oldest samples when it exceeds the
        configured span; afterwards an overflow is raised to the caller.

        Returns:
            True if the sample was accepted

        Raises:
            PreconditionError: If the engine has been stopped
            BufferOverflowError: If the buffer bound would be exceeded
        """
        with self._lock:
            if self._status is EngineStatus.STOPPED:
                raise PreconditionError("add_sample called on a stopped engine")
            if not sample.is_finite:
                logger.warning(
                    "Dropping non-finite IMU sample at %d ns", sample.timestamp_ns
                )
                return False
            try:
                self._buffer.append(
                    sample, evict_oldest=self._status is EngineStatus.UNINITIALIZED
                )
            except OutOfOrderSampleError as e:
                logger.warning("Dropping IMU sample: %s", e)
                return False
            return True

    # ------------------------------------------------------------------
    # Epoch control
    # ------------------------------------------------------------------

    def set_start(
        self,
        timestamp_ns: int,
        orientation: np.ndarray | None = None,
        position: np.ndarray | None = None,
        velocity: np.ndarray | None = None,
    ) -> None:
        """Start a new preintegration epoch at ``timestamp_ns``.

        Resets the current state to the supplied priors (identity orientation
        and zero position/velocity where omitted) with the last known bias,
        discards samples strictly before the start time and clears the state
        window. The next ``register_factor`` again emits an absolute prior.

        Args:
            timestamp_ns: Start time in nanoseconds
            orientation: Prior quaternion [w, x, y, z]
            position: Prior position in world frame
            velocity: Prior velocity in world frame

        Raises:
            PreconditionError: If the engine has been stopped
        """
        with self._lock:
            if self._status is EngineStatus.STOPPED:
                raise PreconditionError("set_start called on a stopped engine")

            self._current_state = ImuState(
                timestamp_ns,
                orientation=orientation,
                position=position,
                velocity=velocity,
                gyro_bias=self._carry_over_bias.gyro,
                accel_bias=self._carry_over_bias.accel,
                source=self._params.source,
            )
            dropped = self._buffer.discard_before(timestamp_ns)
            self._window.clear()
            self._prior_emitted = False
            self._epoch += 1
            self._status = EngineStatus.ACTIVE

            logger.debug(
                "Started epoch %d at %d ns (discarded %d samples)",
                self._epoch,
                timestamp_ns,
                dropped,
            )

    def stop(self) -> None:
        """Stop the engine; later control operations raise PreconditionError."""
        with self._lock:
            self._status = EngineStatus.STOPPED
            self._buffer.clear()
            logger.debug("Preintegration engine stopped")

    # ------------------------------------------------------------------
    # Prediction and queries
    # ------------------------------------------------------------------

    def predict_state(self, delta: ImuDelta, base_state: ImuState) -> ImuState:
        """Apply a delta plus gravity to ``base_state``.

        If the base state's biases differ from those the delta was integrated
        with, the delta is first corrected to first order.

            R_j = R_i dR
            v_j = v_i + g dt + R_i dv
            p_j = p_i + v_i dt + ½ g dt² + R_i dp

        Args:
            delta: Preintegrated delta starting at the base state's time
            base_state: State the delta is applied to (not modified)

        Returns:
            New state at base_state.timestamp_ns + delta.duration_ns, carrying
            the base state's biases

        Raises:
            NumericalError: If the predicted state is not finite
        """
        with self._lock:
            delta = delta.corrected(base_state.gyro_bias, base_state.accel_bias)
            dt = delta.dt
            g = self._params.gravity
            R_i = base_state.rotation
            p_i = base_state.position
            v_i = base_state.velocity

            orientation = quat_multiply(base_state.orientation, delta.delta_q)
            velocity = v_i + g * dt + R_i @ delta.delta_v
            position = p_i + v_i * dt + 0.5 * g * dt * dt + R_i @ delta.delta_p

            if not (np.all(np.isfinite(position)) and np.all(np.isfinite(velocity))):
                raise NumericalError(
                    f"Non-finite prediction from state at {base_state.timestamp_ns} ns"
                )

            return ImuState(
                base_state.timestamp_ns + delta.duration_ns,
                orientation=quat_normalize(orientation),
                position=position,
                velocity=velocity,
                gyro_bias=base_state.gyro_bias,
                accel_bias=base_state.accel_bias,
                source=base_state.source,
            )

    def get_pose(self, timestamp_ns: int, frame: str = "imu") -> SE3:
        """Pose at ``timestamp_ns`` predicted from the current state.

        Only the buffered samples between the current state and the query
        time are integrated; the buffer and current state are not modified.

        Args:
            timestamp_ns: Query time, within [current state time, last sample]
            frame: "imu" for T_WORLD_IMU or "body" for T_WORLD_BODY

        Returns:
            Rigid transform from the requested frame to the world frame

        Raises:
            PreconditionError: If called before set_start or after stop
            RangeError: If the time is outside the buffered window
        """
        if frame not in ("imu", "body"):
            raise ValueError(f"Unknown frame '{frame}', expected 'imu' or 'body'")

        with self._lock:
            current = self._require_active("get_pose")
            start_ns = current.timestamp_ns
            last_ns = self._buffer.last_timestamp
            if last_ns is None or not start_ns <= timestamp_ns <= last_ns:
                raise RangeError(
                    f"Pose query at {timestamp_ns} ns is outside the buffered window "
                    f"[{start_ns}, {last_ns}] ns"
                )

            samples = self._buffer.window(start_ns, timestamp_ns)
            try:
                delta = self._integrator.integrate(
                    samples,
                    start_ns,
                    timestamp_ns,
                    current.gyro_bias,
                    current.accel_bias,
                    propagate_covariance=False,
                )
            except InsufficientDataError as e:
                raise RangeError(
                    f"No buffered samples cover the pose query at {timestamp_ns} ns"
                ) from e

            pose = self.predict_state(delta, current).to_pose()

        if frame == "body":
            pose = pose @ self._extrinsics.body_to_imu
        return pose

    def get_current_state(self) -> ImuState:
        """Copy of the current state.

        Raises:
            PreconditionError: If called before set_start
        """
        with self._lock:
            if self._current_state is None:
                raise PreconditionError("get_current_state called before set_start")
            return self._current_state.copy()

    # ------------------------------------------------------------------
    # Factor registration
    # ------------------------------------------------------------------

    def register_factor(self, end_time_ns: int) -> ImuTransaction:
        """Preintegrate up to ``end_time_ns`` and build the optimizer bundle.

        The first call after ``set_start`` emits both the start and end states
        with an absolute prior on the start state plus the relative
        constraint; later calls emit only the new end state and the relative
        constraint. On success the current state advances to the end time
        and samples no longer in effect are discarded. A failing state
        callback is logged and does not affect the returned bundle.

        Args:
            end_time_ns: Time of the new state in nanoseconds

        Returns:
            ImuTransaction with the new variables, constraints and the bias
            to carry into the next interval

        Raises:
            PreconditionError: If not started, stopped, or end time is not
                after the current state
            InsufficientDataError: If buffered samples do not reach the end
                time (nothing is modified; retry later)
        """
        with self._lock:
            current = self._require_active("register_factor")
            start_ns = current.timestamp_ns
            if end_time_ns <= start_ns:
                raise PreconditionError(
                    f"Factor end time {end_time_ns} ns is not after the current "
                    f"state at {start_ns} ns"
                )

            last_ns = self._buffer.last_timestamp
            if last_ns is None or last_ns < end_time_ns:
                raise InsufficientDataError(
                    f"Buffered IMU samples end at {last_ns} ns, before the requested "
                    f"factor end {end_time_ns} ns"
                )

            delta = self._integrator.integrate(
                self._buffer.window(start_ns, end_time_ns),
                start_ns,
                end_time_ns,
                current.gyro_bias,
                current.accel_bias,
            )
            new_state = self.predict_state(delta, current)

            builder = ImuTransactionBuilder(self._params.source)
            first_in_epoch = not self._prior_emitted
            if first_in_epoch:
                builder.add_state(current)
                builder.add_absolute_prior(current, self._params.prior_noise)
            builder.add_state(new_state)
            builder.add_relative_constraint(current, new_state, delta)
            carry_over = ImuBias.from_state(new_state)
            transaction = builder.build(end_time_ns, carry_over_bias=carry_over)

            # Commit
            if first_in_epoch:
                self._window.append(current)
                self._prior_emitted = True
            self._current_state = new_state
            self._carry_over_bias = carry_over
            evicted = self._window.append(new_state)
            if self._params.lag_duration_s is not None:
                lag_ns = int(round(self._params.lag_duration_s * 1e9))
                evicted += self._window.evict_older_than(
                    end_time_ns - lag_ns, key=lambda s: s.timestamp_ns
                )
            consumed = self._buffer.discard_superseded(end_time_ns)

            logger.debug(
                "Registered IMU factor [%d, %d] ns: %d samples integrated, "
                "%d consumed, %d states evicted",
                start_ns,
                end_time_ns,
                delta.num_samples,
                consumed,
                len(evicted),
            )

            registered = [current, new_state] if first_in_epoch else [new_state]
            for callback in self._callbacks:
                for state in registered:
                    try:
                        callback(state.copy())
                    except Exception:
                        logger.exception(
                            "State callback failed for state at %d ns", state.timestamp_ns
                        )

            return transaction

    # ------------------------------------------------------------------
    # Optimizer feedback
    # ------------------------------------------------------------------

    def update_states(self, solution: Solution) -> int:
        """Apply an optimizer solution to the retained states.

        States whose variables are missing from the solution keep their
        prior estimate.

        Returns:
            Number of states updated
        """
        with self._lock:
            states = list(self._window)
            if self._current_state is not None and not any(
                s is self._current_state for s in states
            ):
                states.append(self._current_state)

            updated = sum(1 for state in states if state.update(solution))
            if self._current_state is not None:
                self._carry_over_bias = ImuBias.from_state(self._current_state)

            logger.debug("Updated %d of %d IMU states from solution", updated, len(states))
            return updated

    def remove_missing_states(self, solution: Solution) -> int:
        """Drop retained states whose variables are absent from ``solution``.

        The current state is never dropped.

        Returns:
            Number of states removed
        """
        with self._lock:
            current = self._current_state

            def missing(state: ImuState) -> bool:
                if state is current:
                    return False
                return not all(uid in solution for uid in state.uuids())

            return len(self._window.evict_where(missing))

    def add_state_callback(self, callback: StateCallback) -> None:
        """Register a hook called with a copy of every newly registered state."""
        with self._lock:
            self._callbacks.append(callback)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def status(self) -> EngineStatus:
        """Lifecycle status."""
        return self._status

    @property
    def epoch(self) -> int:
        """Number of set_start calls so far."""
        return self._epoch

    @property
    def params(self) -> ImuParams:
        """Return the IMU parameters."""
        return self._params

    @property
    def extrinsics(self) -> ImuExtrinsics:
        """Return the IMU extrinsics."""
        return self._extrinsics

    @property
    def buffer_size(self) -> int:
        """Number of buffered samples."""
        with self._lock:
            return len(self._buffer)

    @property
    def carry_over_bias(self) -> ImuBias:
        """Bias the next interval will be integrated with."""
        with self._lock:
            return self._carry_over_bias

    @property
    def states(self) -> list[ImuState]:
        """Copies of the retained states, oldest first."""
        with self._lock:
            return [state.copy() for state in self._window]

    def _require_active(self, operation: str) -> ImuState:
        if self._status is EngineStatus.STOPPED:
            raise PreconditionError(f"{operation} called on a stopped engine")
        if self._status is EngineStatus.UNINITIALIZED or self._current_state is None:
            raise PreconditionError(f"{operation} called before set_start")
        return self._current_state
