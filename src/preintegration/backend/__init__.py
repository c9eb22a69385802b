"""Optimizer-facing types: variables, constraints and transactions."""

from .constraints import ConstraintKind, ImuStateConstraint
from .transaction import ImuBias, ImuTransaction, ImuTransactionBuilder
from .variables import (
    STATE_KINDS,
    Solution,
    Variable,
    VariableKind,
    solution_from_variables,
    variable_uuid,
)

__all__ = [
    # Variables
    "Variable",
    "VariableKind",
    "STATE_KINDS",
    "Solution",
    "solution_from_variables",
    "variable_uuid",
    # Constraints
    "ConstraintKind",
    "ImuStateConstraint",
    # Transactions
    "ImuBias",
    "ImuTransaction",
    "ImuTransactionBuilder",
]
