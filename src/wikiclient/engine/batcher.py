"""
Splitting of title and ID lists into server-sized batches.

Inputs are sorted and deduplicated before slicing. Results of a batched
query therefore come back in sorted order, and callers must re-associate
them by key, never by position.
"""

from typing import Callable, Iterable, List, Optional


def _windows(items: List[str], size: int) -> List[str]:
    if size < 1:
        raise ValueError(f"Batch size must be positive, got {size}")
    return ["|".join(items[i:i + size]) for i in range(0, len(items), size)]


def chunk_titles(
    titles: Iterable[str],
    size: int,
    normalizer: Optional[Callable[[str], str]] = None,
) -> List[str]:
    """
    Build pipe-joined title batches.

    Args:
        titles: Titles in caller order, possibly with duplicates
        size: Maximum titles per batch (the session's slowmax)
        normalizer: Optional title normalisation applied before deduplication

    Returns:
        Pipe-joined batches covering sorted(set(titles))
    """
    if normalizer is not None:
        titles = (normalizer(t) for t in titles)
    return _windows(sorted(set(titles)), size)


def chunk_ids(ids: Iterable[int], size: int) -> List[str]:
    """
    Build pipe-joined ID batches. Negative IDs mean "no ID" and are dropped.
    """
    unique = sorted({i for i in ids if i >= 0})
    return _windows([str(i) for i in unique], size)


def namespace_string(namespaces: Iterable[int]) -> str:
    """Pipe-joined, sorted, deduplicated namespace list without negative (virtual) namespaces."""
    return "|".join(str(ns) for ns in sorted({ns for ns in namespaces if ns >= 0}))
