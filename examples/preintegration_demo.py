#!/usr/bin/env python3
"""Demo script for IMU preintegration.

Feeds IMU samples into the preintegration engine, registers one factor per
keyframe interval and prints the predicted states and the size of every
bundle sent to the (absent) optimizer.

With ``dataset_path = None`` the samples come from a synthetic trajectory and
are compared to its ground truth; otherwise a EuRoC mav0 directory is read.

Usage:
    python examples/preintegration_demo.py
"""

import numpy as np

from preintegration import (
    ImuParams,
    ImuPreintegration,
    ImuReader,
    SyntheticTrajectory,
    TrajectoryWriter,
)
from preintegration.lie import log_so3

SECOND_NS = 1_000_000_000


def main() -> None:
    """Run the preintegration demo."""
    # Configuration
    dataset_path = None  # e.g. "data/euroc/MH_01_easy/mav0"
    keyframe_interval_ns = SECOND_NS // 2
    duration_ns = 20 * SECOND_NS
    output_path = "output/imu_states.csv"

    # Initialize
    print("Initializing IMU preintegration...")
    print("=" * 80)
    trajectory = None
    if dataset_path is None:
        trajectory = SyntheticTrajectory()
        params = ImuParams()
        samples = trajectory.generate_samples(0, duration_ns, rate_hz=200.0)
        engine = ImuPreintegration(params)
        start_ns = 0
        truth = trajectory.state(start_ns)
        orientation, position, velocity = truth.orientation, truth.position, truth.velocity
    else:
        reader = ImuReader(dataset_path)
        samples = list(reader)
        engine = ImuPreintegration(reader.params, reader.extrinsics)
        start_ns = reader.start_timestamp
        duration_ns = min(duration_ns, reader.end_timestamp - start_ns)
        orientation = position = velocity = None

    print(f"Loaded {len(samples)} IMU samples")
    print(f"Keyframe interval: {keyframe_interval_ns / 1e9:.2f} s")
    print()

    for sample in samples:
        engine.add_sample(sample)
    engine.set_start(start_ns, orientation, position, velocity)

    # Column headers
    print(
        f"{'Time':>7} | {'Vars':>4} {'Cons':>4} | "
        f"{'Position':^30} | "
        f"{'Pos err':>9} {'Rot err':>9}"
    )
    print("-" * 74)

    errors: list[float] = []
    with TrajectoryWriter(output_path) as writer:
        engine.add_state_callback(writer)

        t = start_ns + keyframe_interval_ns
        while t <= start_ns + duration_ns:
            tx = engine.register_factor(t)
            state = engine.get_current_state()
            pos = state.position

            error = rot_error = np.nan
            if trajectory is not None:
                error = float(np.linalg.norm(pos - trajectory.position(t)))
                rot_error = float(np.linalg.norm(log_so3(state.rotation.T @ trajectory.rotation(t))))
                errors.append(error)

            print(
                f"{(t - start_ns) / 1e9:6.2f}s | "
                f"{len(tx.added_variables):4d} {len(tx.added_constraints):4d} | "
                f"[{pos[0]:8.3f}, {pos[1]:8.3f}, {pos[2]:8.3f}] | "
                f"{error:8.2e}m {rot_error:7.2e}rad"
            )
            t += keyframe_interval_ns

    # Final statistics
    print()
    print("=" * 80)
    print("SUMMARY")
    print("=" * 80)
    print(f"States written:   {writer.num_written} -> {output_path}")
    print(f"States retained:  {len(engine.states)}")
    print(f"Samples buffered: {engine.buffer_size}")
    if errors:
        print()
        print("Position error vs ground truth:")
        print(f"  Max:    {max(errors):.2e} m")
        print(f"  Mean:   {np.mean(errors):.2e} m")
        print(f"  Final:  {errors[-1]:.2e} m")
    print()
    print(engine.get_current_state().describe())


if __name__ == "__main__":
    main()
