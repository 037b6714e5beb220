"""
Chip activation registry.

A participant may activate each chip kind (Double Up, Wildcard) at most once,
and only on a match of the chip-eligible stage. Activation happens out of band,
before a recompute; the scorer only calls `lookup`.

The registry keeps its activations in a swappable store. `InMemoryChipStore`
is used by the pure engine and tests; `tipping.models.chips.DatabaseChipStore`
backs it with a table carrying a uniqueness constraint.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from ..constants import CHIP_LABELS
from .scoring_engine import ChipError, DuplicateChipError, InvalidTargetError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChipActivation:
    participant: str
    kind: str
    match_number: int


class InMemoryChipStore:
    """Dictionary-backed store keyed by (participant, kind)."""

    def __init__(self):
        self._activations: Dict[Tuple[str, str], int] = {}

    def get(self, participant: str, kind: str) -> Optional[int]:
        return self._activations.get((participant, kind))

    def add(self, participant: str, kind: str, match_number: int):
        key = (participant, kind)
        if key in self._activations:
            raise DuplicateChipError(
                f"{participant} already activated {CHIP_LABELS.get(kind, kind)}"
            )
        self._activations[key] = match_number

    def items(self) -> List[ChipActivation]:
        return [
            ChipActivation(participant, kind, match_number)
            for (participant, kind), match_number in sorted(self._activations.items())
        ]


class ChipRegistry:
    """Validates and stores at most one activation per chip kind per participant."""

    def __init__(self, eligible_matches: Iterable[int], store=None):
        self.eligible_matches = frozenset(eligible_matches)
        self.store = store if store is not None else InMemoryChipStore()
        self._lock = threading.Lock()

    @classmethod
    def from_activations(cls, eligible_matches, activations, store=None) -> "ChipRegistry":
        """Builds a registry from already-recorded (participant, kind, match_number) triples."""
        registry = cls(eligible_matches, store=store)
        for participant, kind, match_number in activations:
            registry.activate(participant, kind, match_number)
        return registry

    def activate(self, participant: str, kind: str, match_number: int) -> ChipActivation:
        """
        Activates a chip.

        Raises:
            ChipError: unknown chip kind
            InvalidTargetError: match is not in the chip-eligible stage
            DuplicateChipError: participant already used this chip kind
        """
        if kind not in CHIP_LABELS:
            raise ChipError(f"Unknown chip kind '{kind}'")
        if isinstance(match_number, bool) or not isinstance(match_number, int):
            raise InvalidTargetError(f"Chip target must be a match number, got {match_number!r}")
        if match_number not in self.eligible_matches:
            raise InvalidTargetError(
                f"Match {match_number} is not eligible for {CHIP_LABELS[kind]}"
            )

        # Check and insert in one critical section; the store may add its own
        # uniqueness guarantee on top (see DatabaseChipStore).
        with self._lock:
            if self.store.get(participant, kind) is not None:
                raise DuplicateChipError(
                    f"{participant} already activated {CHIP_LABELS[kind]}"
                )
            self.store.add(participant, kind, match_number)

        logger.info(f"{participant} activated {CHIP_LABELS[kind]} on match {match_number}")
        return ChipActivation(participant, kind, match_number)

    def lookup(self, participant: str, kind: str) -> Optional[int]:
        return self.store.get(participant, kind)

    def activations(self) -> List[ChipActivation]:
        return self.store.items()
