"""Pairwise rate reduction shared by the disk I/O and network samplers."""

from __future__ import annotations

from typing import Callable, Mapping, Protocol, Sequence, TypeVar

BYTES_PER_MB = 1024 * 1024
BITS_PER_MEGABIT = 1_000_000
BYTES_PER_GB = 1_000_000_000


class Timestamped(Protocol):
    timestamp: float


T = TypeVar("T", bound=Timestamped)

Counters = Mapping[str, Sequence[int]]


def _pair_deltas(prev: Counters, curr: Counters, width: int) -> list[int] | None:
    """Sum counter deltas over the keys present in both samples.

    Returns None if any counter went backwards (device replaced, counter
    wrapped), so the caller can treat the pair as a gap.
    """
    totals = [0] * width
    for key, values in curr.items():
        previous = prev.get(key)
        if previous is None:
            continue
        for i in range(width):
            delta = values[i] - previous[i]
            if delta < 0:
                return None
            totals[i] += delta
    return totals


def mean_pair_rates(
    samples: Sequence[T],
    counters: Callable[[T], Counters],
    width: int,
) -> tuple[float, ...]:
    """Average the per-second counter rates over consecutive sample pairs.

    *counters* maps a sample to ``{key: (c0, c1, ...)}`` with *width* values
    per key. Deltas are summed across keys within a pair, divided by the
    elapsed seconds, then averaged over all valid pairs. Pairs with a
    non-positive elapsed time or a decreasing counter are skipped. Fewer than
    two samples, or no valid pair, yields all zeros.
    """
    totals = [0.0] * width
    pairs = 0
    for prev, curr in zip(samples, samples[1:]):
        elapsed = curr.timestamp - prev.timestamp
        if elapsed <= 0:
            continue
        deltas = _pair_deltas(counters(prev), counters(curr), width)
        if deltas is None:
            continue
        for i, delta in enumerate(deltas):
            totals[i] += delta / elapsed
        pairs += 1

    if pairs == 0:
        return (0.0,) * width
    return tuple(total / pairs for total in totals)
