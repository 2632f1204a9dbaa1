"""Pick trope combinations that no existing work already uses."""
from __future__ import annotations

import logging
import random
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

logger = logging.getLogger(__name__)

MAIN_TROPES = (
    "enemies-to-lovers",
    "fake-relationship",
    "second-chance",
    "forbidden-love",
    "arranged-marriage",
    "bodyguard-romance",
    "master-servant",
    "rival-to-lover",
)

SUB_TROPES = (
    "regression",
    "transmigration",
    "hidden-identity",
    "power-struggle",
    "time-loop",
    "parallel-world",
    "memory-loss",
    "prophecy-bound",
)

CONFLICTS = (
    "ancient-curse",
    "political-intrigue",
    "magical-awakening",
    "forbidden-power",
    "divine-intervention",
    "family-secrets",
    "war-brewing",
    "dark-prophecy",
)

CONCEPT_KEYS = ("main_trope", "sub_trope", "conflict")

Combination = Tuple[str, str, str]


def combination_of(concept: Dict[str, str]) -> Optional[Combination]:
    if not all(concept.get(key) for key in CONCEPT_KEYS):
        return None
    return (concept["main_trope"], concept["sub_trope"], concept["conflict"])


class ConceptPicker:
    """Bounded random search with a deterministic fallback.

    After ``max_attempts`` collisions the last drawn combination is reused
    with a ``variant-<n>`` tag, ``n`` counting prior uses of it.
    """

    def __init__(
        self,
        max_attempts: int = 50,
        rng: Optional[random.Random] = None,
        main_tropes: Sequence[str] = MAIN_TROPES,
        sub_tropes: Sequence[str] = SUB_TROPES,
        conflicts: Sequence[str] = CONFLICTS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.rng = rng or random.Random()
        self.main_tropes = list(main_tropes)
        self.sub_tropes = list(sub_tropes)
        self.conflicts = list(conflicts)

    def _draw(self) -> Combination:
        return (
            self.rng.choice(self.main_tropes),
            self.rng.choice(self.sub_tropes),
            self.rng.choice(self.conflicts),
        )

    def pick(self, used: Iterable[Dict[str, str]]) -> Dict[str, str]:
        used_list: List[Dict[str, str]] = list(used)
        taken: Set[Combination] = set()
        for concept in used_list:
            combo = combination_of(concept)
            if combo is not None:
                taken.add(combo)

        combo = self._draw()
        for attempt in range(1, self.max_attempts + 1):
            if combo not in taken:
                logger.debug("Picked concept %s after %s attempt(s)", combo, attempt)
                return dict(zip(CONCEPT_KEYS, combo))
            if attempt < self.max_attempts:
                combo = self._draw()

        prior = sum(1 for concept in used_list if combination_of(concept) == combo)
        variant = f"variant-{prior + 1}"
        logger.warning("No unused concept after %s attempts, falling back to %s", self.max_attempts, variant)
        return {**dict(zip(CONCEPT_KEYS, combo)), "variant": variant}
