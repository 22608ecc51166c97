"""Integer downsampling factor for sampled decodes."""

from __future__ import annotations

NO_LIMIT = -1


def compute_sample_size(width: int, height: int, target_max_dimension: int) -> int:
    """Smallest factor S >= 1 with ``max(width, height) / S <= target_max_dimension``.

    The result is ``ceil(max(width, height) / target)``, so the sampled image
    never ends up larger than the target on its longest edge; it may come out
    slightly smaller. ``NO_LIMIT`` and unreadable (zero) dimensions give 1.
    """
    if target_max_dimension == NO_LIMIT:
        return 1
    if target_max_dimension <= 0:
        raise ValueError(f"target_max_dimension must be positive or NO_LIMIT: {target_max_dimension}")
    longest = max(int(width), int(height))
    if longest <= target_max_dimension:
        return 1
    return -(-longest // target_max_dimension)
