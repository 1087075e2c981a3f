"""Ordered heuristic chains.

Each detector returns zero or more candidates; the combinator picks the
first detector that produced anything. Precedence lives in the order of the
detector list rather than in nested conditionals.
"""

from __future__ import annotations

from typing import Callable, Sequence, TypeVar

from ..logger import TRACE, get_logger

logger = get_logger(__name__)

T = TypeVar("T")
I = TypeVar("I")


def first_non_empty(
    detectors: Sequence[tuple[str, Callable[[I], list[T]]]],
    data: I,
) -> tuple[str | None, list[T]]:
    """Run ``detectors`` in order and return the first non-empty result.

    Args:
        detectors: ``(name, detector)`` pairs in priority order.
        data: Input handed to every detector.

    Returns:
        ``(name, candidates)`` of the winning detector, or ``(None, [])``.
    """
    for name, detector in detectors:
        candidates = detector(data)
        if candidates:
            logger.debug("Detector %s produced %d candidate(s)", name, len(candidates))
            return name, candidates
        logger.log(TRACE, "Detector %s produced no candidates", name)
    return None, []
