"""Effective source list for one package request."""

from typing import List, Optional, Sequence

from registry import SourceRepository


def select_sources(
    explicit_sources: Optional[Sequence[SourceRepository]],
    exclusive_sources: bool,
    remote_sources: Sequence[SourceRepository],
) -> List[SourceRepository]:
    """Compute the sources to search.

    Exclusive requests search exactly their explicit sources, even when that
    list is empty. Otherwise explicit sources come first, followed by the
    remote sources, with exact duplicates dropped.
    """
    if exclusive_sources:
        return list(explicit_sources or ())
    if explicit_sources is None:
        return list(remote_sources)

    selected: List[SourceRepository] = []
    seen = set()
    for repository in list(explicit_sources) + list(remote_sources):
        if repository in seen:
            continue
        seen.add(repository)
        selected.append(repository)
    return selected
