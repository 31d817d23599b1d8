"""Peak-preserving reduction of amplitude sequences to fixed-size summaries."""

import math
from typing import List, Sequence


def downsample(sequence: Sequence[float], target_count: int) -> List[float]:
    """Reduce an amplitude sequence to exactly target_count values.

    Each output slot takes the maximum of its bucket of the input, so short
    loud moments survive the reduction. When there are more slots than
    input values some buckets are empty; those repeat the value at the
    bucket start, or 0 past the end of the input.

    Args:
        sequence: Non-negative amplitude values.
        target_count: Number of summary values to produce.

    Returns:
        List of target_count floats, or an empty list if the sequence is
        empty or target_count is not positive.
    """
    length = len(sequence)
    if length == 0 or target_count <= 0:
        return []
    if length == target_count:
        return [float(value) for value in sequence]

    output = [0.0] * target_count
    step = length / target_count

    for i in range(target_count):
        start = math.floor(i * step)
        end = min(math.floor((i + 1) * step), length)

        if start < end:
            output[i] = float(max(sequence[start:end]))
        elif start < length:
            output[i] = float(sequence[start])

    return output
