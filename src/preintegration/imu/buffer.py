"""Chronological buffer of pending IMU samples."""

from __future__ import annotations

import bisect
import logging
from collections.abc import Iterator

from ..errors import BufferOverflowError, OutOfOrderSampleError
from .sample import ImuSample

logger = logging.getLogger(__name__)


class ImuBuffer:
    """Time-ordered store of IMU samples awaiting integration.

    Samples are kept in a list with a parallel list of timestamps for binary
    search, so slicing a sub-run costs O(log n + k). Ordering is enforced
    against the last accepted timestamp, which is remembered even after the
    sample itself has been discarded.

    If ``max_duration_ns`` is set, the buffer refuses to grow past that time
    span: by default ``append`` raises ``BufferOverflowError``;
    with ``evict_oldest`` the oldest samples are dropped instead.
    """

    def __init__(self, max_duration_ns: int | None = None) -> None:
        """Initialize buffer.

        Args:
            max_duration_ns: Optional bound on last - first timestamp
        """
        self._samples: list[ImuSample] = []
        self._timestamps: list[int] = []
        self._last_accepted_ns: int | None = None
        self._max_duration_ns = max_duration_ns

    def append(self, sample: ImuSample, evict_oldest: bool = False) -> None:
        """Add a sample at the end of the buffer.

        Args:
            sample: New sample
            evict_oldest: On overflow, drop old samples instead of raising

        Raises:
            OutOfOrderSampleError: If the sample is not strictly newer than
                the last accepted one (the buffer is unchanged)
            BufferOverflowError: If accepting the sample would exceed the
                configured time span and ``evict_oldest`` is False
        """
        t = sample.timestamp_ns
        if self._last_accepted_ns is not None and t <= self._last_accepted_ns:
            raise OutOfOrderSampleError(
                f"IMU sample at {t} ns is not after the last accepted sample "
                f"at {self._last_accepted_ns} ns"
            )

        if self._max_duration_ns is not None and self._timestamps:
            oldest_allowed = t - self._max_duration_ns
            if self._timestamps[0] < oldest_allowed:
                if not evict_oldest:
                    raise BufferOverflowError(
                        f"Buffered IMU samples would span more than "
                        f"{self._max_duration_ns * 1e-9:.3f} s; register a factor "
                        f"or restart before adding more"
                    )
                dropped = self.discard_before(oldest_allowed)
                logger.debug("Evicted %d old IMU samples from buffer", dropped)

        self._samples.append(sample)
        self._timestamps.append(t)
        self._last_accepted_ns = t

    def discard_before(self, timestamp_ns: int) -> int:
        """Remove samples strictly before ``timestamp_ns``.

        Returns:
            Number of samples removed
        """
        idx = bisect.bisect_left(self._timestamps, timestamp_ns)
        if idx:
            del self._samples[:idx]
            del self._timestamps[:idx]
        return idx

    def discard_superseded(self, timestamp_ns: int) -> int:
        """Remove samples no longer in effect at ``timestamp_ns``.

        The latest sample at or before ``timestamp_ns`` is kept, since it
        still covers the time up to the next sample.

        Returns:
            Number of samples removed
        """
        idx = bisect.bisect_right(self._timestamps, timestamp_ns) - 1
        if idx > 0:
            del self._samples[:idx]
            del self._timestamps[:idx]
        return max(idx, 0)

    def window(self, start_ns: int, end_ns: int) -> list[ImuSample]:
        """Samples in effect over [start_ns, end_ns).

        Includes the latest sample at or before ``start_ns`` (the one in
        effect at the start) and every sample strictly before ``end_ns``.
        """
        lo = bisect.bisect_right(self._timestamps, start_ns) - 1
        lo = max(lo, 0)
        hi = bisect.bisect_left(self._timestamps, end_ns)
        return self._samples[lo:hi]

    def clear(self) -> None:
        """Remove all samples; the ordering watermark is kept."""
        self._samples.clear()
        self._timestamps.clear()

    @property
    def first_timestamp(self) -> int | None:
        """Timestamp of the oldest buffered sample."""
        return self._timestamps[0] if self._timestamps else None

    @property
    def last_timestamp(self) -> int | None:
        """Timestamp of the newest buffered sample."""
        return self._timestamps[-1] if self._timestamps else None

    @property
    def last_accepted_timestamp(self) -> int | None:
        """Timestamp of the newest sample ever accepted."""
        return self._last_accepted_ns

    @property
    def span_ns(self) -> int:
        """Time covered by the buffered samples."""
        if not self._timestamps:
            return 0
        return self._timestamps[-1] - self._timestamps[0]

    def __len__(self) -> int:
        """Number of buffered samples."""
        return len(self._samples)

    def __iter__(self) -> Iterator[ImuSample]:
        """Iterate samples oldest first."""
        return iter(list(self._samples))
