"""FileID allocation for new blocks.

Generated IDs are drawn from [1_000_000_000, 9_999_999_999], which is well
above the low IDs Unity reserves for built-in global objects (1 to 10000)
and fits in the signed 64-bit range Unity uses for local identifiers.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable

logger = logging.getLogger(__name__)

FILE_ID_MIN = 1_000_000_000
FILE_ID_MAX = 9_999_999_999


def generate_file_id(existing: set[int], rng: random.Random | None = None) -> int:
    """Generate a fileID that is nonzero and not in ``existing``.

    The new ID is added to ``existing`` so repeated calls within one
    operation never collide with each other.

    Args:
        existing: FileIDs already used in the document (mutated)
        rng: Optional random source for reproducible IDs

    Returns:
        A fresh fileID
    """
    rng = rng or random
    while True:
        candidate = rng.randint(FILE_ID_MIN, FILE_ID_MAX)
        if candidate != 0 and candidate not in existing:
            existing.add(candidate)
            return candidate


class FileIDAllocator:
    """Allocates document-unique fileIDs for a batch of new blocks."""

    def __init__(self, existing: Iterable[int] = (), rng: random.Random | None = None):
        self.existing: set[int] = set(existing)
        self.rng = rng

    def next_id(self) -> int:
        file_id = generate_file_id(self.existing, self.rng)
        logger.debug("Allocated fileID %d", file_id)
        return file_id

    def allocate(self, count: int) -> list[int]:
        return [self.next_id() for _ in range(count)]

    def build_map(self, old_ids: Iterable[int]) -> dict[int, int]:
        """Map every old ID to a freshly allocated one (0 is never mapped)."""
        id_map: dict[int, int] = {}
        for old_id in old_ids:
            if old_id != 0 and old_id not in id_map:
                id_map[old_id] = self.next_id()
        return id_map
