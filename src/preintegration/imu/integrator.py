"""IMU preintegration between two timestamps.

Integrates gyroscope and accelerometer samples into a relative motion delta
(rotation, velocity, translation) expressed in the IMU frame at the start of
the interval. Gravity is not removed here; it is applied when the delta is
used to predict a state, so the same delta can be reused across bases.

Alongside the mean, the integrator propagates the 15-dimensional error-state
covariance of [dtheta, dp, dv, dbg, dba] and the Jacobian of the delta with
respect to the biases, which lets a delta be corrected for new bias
estimates without replaying the samples.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

import numpy as np
from scipy import linalg

from ..config import ImuParams
from ..errors import InsufficientDataError, NumericalError, PreconditionError
from ..lie import (
    exp_so3,
    quat_exp,
    quat_multiply,
    quat_to_rotation,
    right_jacobian_so3,
    skew,
)
from .delta import BA, BG, POS, ROT, VEL, ImuDelta, initial_bias_jacobian
from .sample import ImuSample

logger = logging.getLogger(__name__)

_PSD_TOLERANCE = 1e-9


def select_run(
    samples: Iterable[ImuSample], start_ns: int, end_ns: int
) -> list[ImuSample]:
    """Pick the samples that drive integration over [start_ns, end_ns).

    Samples must arrive in strictly increasing time order; any sample that is
    not strictly after the previously accepted one is dropped with a warning.
    Scanning stops at the first sample at or after ``end_ns``. Samples that
    are superseded by a later sample at or before ``start_ns`` are skipped, so
    the first returned sample is the one in effect at ``start_ns`` (or the
    earliest one after it, which then also covers the leading gap).
    """
    run: list[ImuSample] = []
    last_ns: int | None = None
    for sample in samples:
        if last_ns is not None and sample.timestamp_ns <= last_ns:
            logger.warning(
                "Dropping out-of-order IMU sample at %d ns (previous %d ns)",
                sample.timestamp_ns,
                last_ns,
            )
            continue
        if sample.timestamp_ns >= end_ns:
            break
        last_ns = sample.timestamp_ns
        if run and sample.timestamp_ns <= start_ns:
            run[0] = sample
            continue
        run.append(sample)
    return run


class ImuIntegrator:
    """Integrates IMU samples into an ``ImuDelta``.

    Per sample step of length dt, with bias-corrected rates ω and specific
    force a:

    - Rotation: dq ← dq ⊗ Exp(ω dt), renormalized
    - Velocity: dv ← dv + R_mid a dt, with R_mid = dR Exp(ω dt / 2)
    - Position: dp ← dp + dv dt + ½ R_mid a dt²

    The covariance and the bias Jacobian are propagated with the linearized
    error dynamics P ← F P Fᵀ + G Q Gᵀ and J ← F J.
    """

    def __init__(self, params: ImuParams) -> None:
        """Initialize integrator.

        Args:
            params: IMU noise model
        """
        self._params = params

    @property
    def params(self) -> ImuParams:
        """Return the noise model."""
        return self._params

    def integrate(
        self,
        samples: Sequence[ImuSample],
        start_ns: int,
        end_ns: int,
        gyro_bias: np.ndarray,
        accel_bias: np.ndarray,
        propagate_covariance: bool = True,
    ) -> ImuDelta:
        """Preintegrate samples over [start_ns, end_ns].

        Args:
            samples: Samples in chronological order
            start_ns: Interval start in nanoseconds
            end_ns: Interval end in nanoseconds
            gyro_bias: Gyroscope bias held fixed over the interval
            accel_bias: Accelerometer bias held fixed over the interval
            propagate_covariance: If False, skip covariance and Jacobian
                propagation (both stay at their initial values)

        Returns:
            ImuDelta for the interval

        Raises:
            PreconditionError: If end_ns precedes start_ns
            InsufficientDataError: If no sample covers a non-empty interval
            NumericalError: If the result is non-finite or the covariance is
                not positive semi-definite
        """
        if end_ns < start_ns:
            raise PreconditionError(
                f"Integration interval ends ({end_ns}) before it starts ({start_ns})"
            )

        gyro_bias = np.asarray(gyro_bias, dtype=np.float64).flatten()
        accel_bias = np.asarray(accel_bias, dtype=np.float64).flatten()

        run = select_run(samples, start_ns, end_ns)
        if end_ns == start_ns:
            return ImuDelta.identity(start_ns, gyro_bias, accel_bias)
        if not run:
            raise InsufficientDataError(
                f"No IMU samples cover the interval [{start_ns}, {end_ns}] ns"
            )

        bounds = [start_ns] + [s.timestamp_ns for s in run[1:]] + [end_ns]

        delta_q = np.array([1.0, 0.0, 0.0, 0.0])
        delta_p = np.zeros(3)
        delta_v = np.zeros(3)
        P = np.zeros((15, 15))
        J = initial_bias_jacobian()

        for sample, t0, t1 in zip(run, bounds[:-1], bounds[1:]):
            dt = (t1 - t0) * 1e-9
            omega = sample.angular_velocity - gyro_bias
            accel = sample.linear_acceleration - accel_bias

            phi = omega * dt
            R = quat_to_rotation(delta_q)
            R_mid = R @ exp_so3(0.5 * phi)
            accel_ref = R_mid @ accel

            if propagate_covariance:
                F, G = self._error_dynamics(phi, accel, R_mid, dt)
                Q = self._params.noise_covariance(dt)
                P = F @ P @ F.T + G @ Q @ G.T
                J = F @ J

            delta_p = delta_p + delta_v * dt + 0.5 * accel_ref * dt * dt
            delta_v = delta_v + accel_ref * dt
            delta_q = quat_multiply(delta_q, quat_exp(phi))

            norm = np.linalg.norm(delta_q)
            if not np.isfinite(norm) or norm < 1e-12:
                raise NumericalError(
                    f"Non-finite rotation while integrating sample at {sample.timestamp_ns} ns"
                )
            delta_q = delta_q / norm

        if not (np.all(np.isfinite(delta_p)) and np.all(np.isfinite(delta_v))):
            raise NumericalError(
                f"Non-finite delta over [{start_ns}, {end_ns}] ns"
            )

        P = 0.5 * (P + P.T)
        self._check_covariance(P, start_ns, end_ns)

        return ImuDelta(
            start_ns=start_ns,
            end_ns=end_ns,
            delta_q=delta_q,
            delta_p=delta_p,
            delta_v=delta_v,
            covariance=P,
            jacobian_bias=J,
            gyro_bias=gyro_bias,
            accel_bias=accel_bias,
            num_samples=len(run),
        )

    @staticmethod
    def _error_dynamics(
        phi: np.ndarray, accel: np.ndarray, R_mid: np.ndarray, dt: float
    ) -> tuple[np.ndarray, np.ndarray]:
        """Linearized one-step transition F (15x15) and noise input G (15x12).

        Noise inputs are ordered [gyro, accel, gyro bias walk, accel bias walk].
        """
        I3 = np.eye(3)
        dR = exp_so3(phi)
        Jr = right_jacobian_so3(phi)
        R_ax = R_mid @ skew(accel)
        dt2 = dt * dt

        F = np.eye(15)
        F[ROT, ROT] = dR.T
        F[ROT, BG] = -Jr * dt
        F[POS, ROT] = -0.5 * R_ax * dt2
        F[POS, VEL] = I3 * dt
        F[POS, BA] = -0.5 * R_mid * dt2
        F[VEL, ROT] = -R_ax * dt
        F[VEL, BA] = -R_mid * dt

        G = np.zeros((15, 12))
        G[ROT, 0:3] = -Jr * dt
        G[POS, 3:6] = -0.5 * R_mid * dt2
        G[VEL, 3:6] = -R_mid * dt
        G[BG, 6:9] = I3
        G[BA, 9:12] = I3
        return F, G

    @staticmethod
    def _check_covariance(P: np.ndarray, start_ns: int, end_ns: int) -> None:
        if not np.all(np.isfinite(P)):
            raise NumericalError(
                f"Non-finite covariance over [{start_ns}, {end_ns}] ns"
            )
        scale = max(1.0, float(np.max(np.abs(np.diag(P)))))
        min_eig = float(linalg.eigvalsh(P)[0])
        if min_eig < -_PSD_TOLERANCE * scale:
            raise NumericalError(
                f"Covariance over [{start_ns}, {end_ns}] ns is not positive "
                f"semi-definite (min eigenvalue {min_eig:.3e})"
            )
