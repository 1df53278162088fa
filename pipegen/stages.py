"""Stage list helpers shared by merging and assembly.

Stage names compare case-insensitively; the first spelling seen is kept.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from .constants import DEFAULT_STAGES


def dedupe_stages(stages: Iterable[str]) -> List[str]:
    seen = set()
    ordered: List[str] = []
    for stage in stages:
        key = stage.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        ordered.append(stage.strip())
    return ordered


def find_stage(stages: Sequence[str], name: str) -> Optional[int]:
    target = name.lower()
    for index, stage in enumerate(stages):
        if stage.lower() == target:
            return index
    return None


def insert_after(stages: List[str], stage: str, *anchors: str) -> None:
    """Insert ``stage`` after the first anchor present, else append it."""
    if find_stage(stages, stage) is not None:
        return
    for anchor in anchors:
        index = find_stage(stages, anchor)
        if index is not None:
            stages.insert(index + 1, stage)
            return
    stages.append(stage)


def insert_before(stages: List[str], stage: str, anchor: str) -> None:
    if find_stage(stages, stage) is not None:
        return
    index = find_stage(stages, anchor)
    if index is None:
        stages.append(stage)
    else:
        stages.insert(index, stage)


def normalize_stages(stages: Iterable[str], *, include_tests: bool) -> Tuple[str, ...]:
    """Return stages with ``build`` first and ``test`` right after it when tests run.

    Without a ``build`` stage an existing ``test`` stage keeps its position.
    """
    ordered = dedupe_stages(stages)
    if not ordered:
        ordered = list(DEFAULT_STAGES)

    build_index = find_stage(ordered, "build")
    if build_index is not None and build_index != 0:
        ordered.insert(0, ordered.pop(build_index))

    if include_tests:
        has_build = find_stage(ordered, "build") == 0
        test_index = find_stage(ordered, "test")
        if test_index is None:
            ordered.insert(1 if has_build else 0, "test")
        elif has_build:
            ordered.insert(1, ordered.pop(test_index))

    return tuple(ordered)


__all__ = [
    "dedupe_stages",
    "find_stage",
    "insert_after",
    "insert_before",
    "normalize_stages",
]
