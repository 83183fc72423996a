"""Milestone threshold tables and comparisons."""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

GOLD_MILESTONES: Tuple[int, ...] = (
    3, 7, 14, 30, 50, 75, 100, 150, 200, 250, 300, 365, 500, 1000,
)
HABIT_MILESTONES: Tuple[int, ...] = (7, 30, 60, 90, 100, 365, 1000)


def reached(thresholds: Sequence[int], streak: int) -> List[int]:
    """Thresholds hit exactly by ``streak``."""
    return [threshold for threshold in thresholds if threshold == streak]


def upcoming(thresholds: Sequence[int], streak: int) -> Optional[int]:
    """The milestone the next completed day would reach, if any."""
    target = streak + 1
    return target if target in thresholds else None


def qualifying(thresholds: Sequence[int], streak: int) -> List[int]:
    """Every threshold already met or exceeded by ``streak``."""
    return [threshold for threshold in thresholds if threshold <= streak]
