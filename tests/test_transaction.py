"""Tests for variables, constraints and the transaction builder."""

import uuid

import numpy as np
import pytest

from preintegration.backend import (
    ConstraintKind,
    ImuBias,
    ImuStateConstraint,
    ImuTransactionBuilder,
    Variable,
    VariableKind,
    variable_uuid,
)
from preintegration.imu import ImuDelta, ImuState

SOURCE = "TEST_SOURCE"


@pytest.fixture
def start() -> ImuState:
    return ImuState(0, position=[1.0, 0.0, 0.0], source=SOURCE)


@pytest.fixture
def end() -> ImuState:
    return ImuState(1_000_000_000, position=[2.0, 0.0, 0.0], source=SOURCE)


class TestKinds:
    """Test suite for variable and constraint kinds."""

    def test_variable_sizes(self):
        """Test the stored and tangent sizes per kind."""
        assert VariableKind.ORIENTATION.size == 4
        assert VariableKind.ORIENTATION.tangent_size == 3
        assert sum(k.size for k in VariableKind) == 16
        assert sum(k.tangent_size for k in VariableKind) == 15

    def test_constraint_arity(self):
        """Test the number of variables per constraint kind."""
        assert ConstraintKind.RELATIVE.num_variables == 10
        assert ConstraintKind.ABSOLUTE.num_variables == 5

    def test_variable_uuid(self):
        """Test identities are deterministic UUIDs."""
        a = variable_uuid(VariableKind.POSITION, SOURCE, 5)
        assert a == variable_uuid(VariableKind.POSITION, SOURCE, 5)
        assert a != variable_uuid(VariableKind.VELOCITY, SOURCE, 5)
        assert isinstance(a, uuid.UUID)

    def test_variable_size_checked(self):
        """Test a variable with the wrong number of values."""
        with pytest.raises(ValueError):
            Variable.create(VariableKind.ORIENTATION, SOURCE, 0, np.zeros(3))


class TestConstraint:
    """Test suite for constraint validation."""

    def test_wrong_variable_count(self, start: ImuState):
        """Test that an absolute constraint needs exactly five variables."""
        with pytest.raises(ValueError, match="5 variables"):
            ImuStateConstraint(
                kind=ConstraintKind.ABSOLUTE,
                source=SOURCE,
                variables=tuple(start.uuids()[:4]),
                mean=start.as_vector(),
                covariance=np.eye(15),
            )

    def test_wrong_mean_size(self, start: ImuState):
        """Test that the mean must be 16-d."""
        with pytest.raises(ValueError, match="mean"):
            ImuStateConstraint(
                kind=ConstraintKind.ABSOLUTE,
                source=SOURCE,
                variables=tuple(start.uuids()),
                mean=np.zeros(15),
                covariance=np.eye(15),
            )

    def test_asymmetric_covariance(self, start: ImuState):
        """Test that the covariance must be symmetric."""
        covariance = np.eye(15)
        covariance[0, 1] = 1.0
        with pytest.raises(ValueError, match="symmetric"):
            ImuStateConstraint(
                kind=ConstraintKind.ABSOLUTE,
                source=SOURCE,
                variables=tuple(start.uuids()),
                mean=start.as_vector(),
                covariance=covariance,
            )

    def test_state_variables(self, start: ImuState, end: ImuState):
        """Test splitting a relative constraint into its two states."""
        builder = ImuTransactionBuilder(SOURCE)
        c = builder.add_relative_constraint(start, end, ImuDelta.identity(0))
        assert list(c.state_variables(0)) == start.uuids()
        assert list(c.state_variables(1)) == end.uuids()
        with pytest.raises(IndexError):
            c.state_variables(2)


class TestBuilder:
    """Test suite for ImuTransactionBuilder."""

    def test_add_state_deduplicates(self, start: ImuState):
        """Test that a state added twice is kept once."""
        builder = ImuTransactionBuilder(SOURCE)
        builder.add_state(start)
        builder.add_state(start.copy())
        tx = builder.build(0)
        assert len(tx.added_variables) == 5
        assert tx.num_states == 1

    def test_full_bundle(self, start: ImuState, end: ImuState):
        """Test a bundle with two states, a prior and a relative constraint."""
        builder = ImuTransactionBuilder(SOURCE)
        builder.add_state(start)
        builder.add_state(end)
        builder.add_absolute_prior(start, 1e-9)
        builder.add_relative_constraint(start, end, ImuDelta.identity(0))
        bias = ImuBias.from_state(end)
        tx = builder.build(end.timestamp_ns, carry_over_bias=bias)

        assert tx.stamp_ns == end.timestamp_ns
        assert tx.source == SOURCE
        assert len(tx.variables_of_kind(VariableKind.POSITION)) == 2
        assert len(tx.constraints_of_kind(ConstraintKind.RELATIVE)) == 1
        assert tx.carry_over_bias is bias
        assert set(tx.variable_uuids()) == set(start.uuids() + end.uuids())
        assert all(c.source == SOURCE for c in tx.added_constraints)

    def test_prior_covariance_forms(self, start: ImuState):
        """Test scalar and matrix prior covariances."""
        builder = ImuTransactionBuilder(SOURCE)
        scalar = builder.add_absolute_prior(start, 0.5)
        matrix = builder.add_absolute_prior(start, np.eye(15) * 0.5)
        np.testing.assert_array_equal(scalar.covariance, matrix.covariance)
        np.testing.assert_array_equal(scalar.mean, start.as_vector())

    def test_build_resets(self, start: ImuState):
        """Test that building empties the builder."""
        builder = ImuTransactionBuilder(SOURCE)
        builder.add_state(start)
        builder.build(0)
        assert builder.build(0).is_empty()

    def test_bundle_is_snapshot(self, start: ImuState):
        """Test that later state changes do not leak into a bundle."""
        builder = ImuTransactionBuilder(SOURCE)
        builder.add_state(start)
        tx = builder.build(0)
        start.set_position(7.0, 7.0, 7.0)
        (position,) = tx.variables_of_kind(VariableKind.POSITION)
        np.testing.assert_array_equal(position.value, [1.0, 0.0, 0.0])

    def test_bias_read_only(self):
        """Test that a carried-over bias is immutable."""
        bias = ImuBias(gyro=np.zeros(3), accel=np.ones(3))
        with pytest.raises(ValueError):
            bias.accel[0] = 2.0
