"""Locality resolution and hierarchy rollup (core domain)."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Iterable, List, Optional

from rapidfuzz.distance import Levenshtein

from core.config import ResolverConfig
from core.models import Locality, LocalityCandidate, LocalityType
from core.ports import StoragePort

LOGGER = logging.getLogger(__name__)

# Too coarse to post or subscribe against.
COARSE_TYPES = frozenset({LocalityType.COUNTRY, LocalityType.STATE, LocalityType.DISTRICT})

# Fine-grained types that match their siblings under the same parent.
ROLLUP_TYPES = frozenset({LocalityType.VILLAGE, LocalityType.URBAN, LocalityType.SETTLEMENT})

# More urban first: a typo is more likely aimed at a bigger place.
TYPE_PRIORITY = {
    LocalityType.CITY: 1,
    LocalityType.URBAN: 2,
    LocalityType.SETTLEMENT: 3,
    LocalityType.VILLAGE: 4,
}


def normalize_locality_name(text: str) -> str:
    """Collapse whitespace and case-fold user input for comparison."""

    return re.sub(r"\s+", " ", text).strip().casefold()


def edit_distance(left: str, right: str) -> int:
    """Levenshtein distance between two normalized locality names."""

    return Levenshtein.distance(normalize_locality_name(left), normalize_locality_name(right))


def rolls_up(left: Locality, right: Locality) -> bool:
    """Return True when two distinct fine-grained localities are siblings."""

    return (
        left.parent_id is not None
        and left.parent_id == right.parent_id
        and left.type in ROLLUP_TYPES
        and right.type in ROLLUP_TYPES
    )


def localities_match(post_locality: Locality, subscription_locality: Locality) -> bool:
    """Single-level rollup: same locality, or fine-grained siblings.

    Localities sharing only a grandparent never match.
    """

    return post_locality.id == subscription_locality.id or rolls_up(post_locality, subscription_locality)


def rollup_locality_ids(storage: StoragePort, locality_id: int) -> List[int]:
    """Return every locality id a post or subscription at locality_id matches."""

    locality = storage.get_locality(locality_id)
    if locality is None or locality.type not in ROLLUP_TYPES or locality.parent_id is None:
        return [locality_id]

    siblings = storage.list_localities_by_parent(locality.parent_id)
    ids = [sibling.id for sibling in siblings if localities_match(locality, sibling)]
    if locality.id not in ids:
        ids.append(locality.id)
    return sorted(ids)


def rank_candidates(candidates: Iterable[LocalityCandidate]) -> List[LocalityCandidate]:
    """Deduplicate by locality and order by type priority, then distance."""

    best: dict[int, LocalityCandidate] = {}
    for candidate in candidates:
        if candidate.locality.type in COARSE_TYPES:
            continue
        current = best.get(candidate.locality.id)
        if current is None or candidate.distance < current.distance:
            best[candidate.locality.id] = candidate

    return sorted(
        best.values(),
        key=lambda item: (
            TYPE_PRIORITY.get(item.locality.type, len(TYPE_PRIORITY) + 1),
            item.distance,
            item.locality.id,
        ),
    )


class LocalityResolver:
    """Maps free-text locality names to ranked candidate localities."""

    def __init__(self, storage: StoragePort, config: ResolverConfig = ResolverConfig()) -> None:
        self._storage = storage
        self._config = config

    async def resolve(self, text: str) -> List[LocalityCandidate]:
        """Return candidates within the edit-distance band, best first.

        An empty list means nothing matched; it is not an error.
        """

        normalized = normalize_locality_name(text)
        if not normalized:
            return []

        raw = await asyncio.to_thread(
            self._storage.select_locality_candidates, normalized, self._config.max_distance
        )
        ranked = rank_candidates(c for c in raw if c.distance <= self._config.max_distance)
        LOGGER.debug("Resolved %r to %s candidate(s)", normalized, len(ranked))
        return ranked

    async def get(self, locality_id: int) -> Optional[Locality]:
        return await asyncio.to_thread(self._storage.get_locality, locality_id)
