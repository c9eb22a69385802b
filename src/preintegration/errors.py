"""Exception taxonomy for the preintegration front end.

DataError covers problems with the inbound sample stream. Out-of-order
samples are dropped and logged where they arrive; InsufficientDataError and
BufferOverflowError are raised to the caller, who may retry later.

RangeError is raised for pose queries outside the buffered window.

PreconditionError and NumericalError indicate defects in the caller or in
the inputs and abort the operation.
"""

from __future__ import annotations


class PreintegrationError(Exception):
    """Base class for all errors raised by this package."""


class DataError(PreintegrationError):
    """Problem with the inertial sample stream."""


class OutOfOrderSampleError(DataError):
    """Sample timestamp is not strictly after the last accepted sample."""


class InsufficientDataError(DataError):
    """Not enough buffered samples to cover the requested interval."""


class BufferOverflowError(DataError):
    """Buffered samples span more time than the configured bound."""


class RangeError(PreintegrationError):
    """Query time falls outside the known window."""


class PreconditionError(PreintegrationError):
    """Operation invoked in a state that does not allow it."""


class NumericalError(PreintegrationError):
    """Non-finite or otherwise invalid numerical result."""
