"""
Branch History Table

Direct-mapped table of PredictorEntry slots and the address indexing scheme.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, List

import numpy as np

from ..errors import ConfigurationError, RangeError
from .entry import PredictorEntry

logger = logging.getLogger(__name__)

SUPPORTED_HISTORY_LENGTHS = (1, 2)


@dataclass
class TableRow:
    """One rendered row of the table."""
    index: int
    history: str
    prediction: str
    correct: int
    incorrect: int
    precision: float

    COLUMNS = ('Index', 'History', 'Prediction', 'Correct', 'Incorrect', 'Precision')

    def to_dict(self) -> dict:
        return {
            'index': self.index,
            'history': self.history,
            'prediction': self.prediction,
            'correct': self.correct,
            'incorrect': self.incorrect,
            'precision': self.precision,
        }


class PredictorTable:
    """
    Branch History Table.

    Holds ``num_entries`` entries (a power of two), all sharing the same
    history length. A branch at address ``a`` maps to entry
    ``(a >> 2) % num_entries``; there is no tag check, so branches
    ``4 * num_entries`` bytes apart share an entry.

    Any change of size, history length or initial bias recreates every
    entry. The table does no locking of its own: callers must not
    reconfigure it while a fetch event is being processed.
    """

    def __init__(self, num_entries: int = 16, history_length: int = 1,
                 initial_bias: bool = False):
        """
        Initialize the table.

        Args:
            num_entries: Number of entries (positive power of two)
            history_length: Outcomes remembered per entry (1 or 2)
            initial_bias: Initial prediction of every entry
        """
        self._entries: List[PredictorEntry] = []
        self._history_length = 0
        self._initial_bias = False
        # Bumped on every configure() so holders of stale indices can tell
        self.generation = 0
        self.configure(num_entries, history_length, initial_bias)

    def configure(self, num_entries: int, history_length: int,
                  initial_bias: bool) -> None:
        """
        Discard all entries and create a fresh table.

        Raises:
            ConfigurationError: If num_entries is not a positive power of two
                or history_length is not supported
        """
        if (isinstance(num_entries, bool) or not isinstance(num_entries, (int, np.integer))
                or num_entries <= 0
                or (num_entries & (num_entries - 1)) != 0):
            raise ConfigurationError(
                f"Number of entries must be a positive power of 2, got {num_entries!r}")
        if isinstance(history_length, bool) or history_length not in SUPPORTED_HISTORY_LENGTHS:
            raise ConfigurationError(
                f"Only history lengths of 1 or 2 supported, got {history_length!r}")

        self._history_length = int(history_length)
        self._initial_bias = bool(initial_bias)
        self._entries = [PredictorEntry(self._history_length, self._initial_bias)
                         for _ in range(int(num_entries))]
        self.generation += 1

        logger.info("BHT configured: %d entries, %d-bit history, initial %s",
                    len(self._entries), self._history_length,
                    'take' if self._initial_bias else 'not take')

    def index_for(self, address: int) -> int:
        """
        Map a branch instruction address to its table index.

        Raises:
            RangeError: If the address is negative
        """
        if address < 0:
            raise RangeError(f"No negative addresses supported: {address}")
        return (address >> 2) % len(self._entries)

    def prediction_at(self, index: int) -> bool:
        return self.entry(index).predict()

    def update_at(self, index: int, outcome: bool) -> None:
        self.entry(index).update(outcome)

    def entry(self, index: int) -> PredictorEntry:
        """
        Get the entry at index.

        Raises:
            RangeError: If index is outside [0, num_entries)
        """
        if not 0 <= index < len(self._entries):
            raise RangeError(
                f"Only indexes in the range 0 to {len(self._entries) - 1} allowed, got {index}")
        return self._entries[index]

    # Query surface for rendering layers

    @property
    def num_entries(self) -> int:
        return len(self._entries)

    @property
    def history_length(self) -> int:
        return self._history_length

    @property
    def initial_bias(self) -> bool:
        return self._initial_bias

    def history_of_entry(self, index: int) -> List[bool]:
        return [bool(taken) for taken in self.entry(index).history]

    def prediction_of_entry(self, index: int) -> bool:
        return self.entry(index).predict()

    def correct_of_entry(self, index: int) -> int:
        return self.entry(index).correct_count

    def incorrect_of_entry(self, index: int) -> int:
        return self.entry(index).incorrect_count

    def precision_of_entry(self, index: int) -> float:
        return self.entry(index).precision

    def rows(self) -> Iterator[TableRow]:
        """Yield one display row per entry."""
        for index, entry in enumerate(self._entries):
            yield TableRow(
                index=index,
                history=entry.history_as_str(),
                prediction=entry.prediction_as_str(),
                correct=entry.correct_count,
                incorrect=entry.incorrect_count,
                precision=entry.precision,
            )

    def get_statistics(self) -> dict:
        """Get table-wide statistics."""
        correct = np.array([e.correct_count for e in self._entries])
        incorrect = np.array([e.incorrect_count for e in self._entries])
        total = int(correct.sum() + incorrect.sum())
        return {
            'entries': self.num_entries,
            'history_length': self._history_length,
            'initial_bias': self._initial_bias,
            'correct': int(correct.sum()),
            'incorrect': int(incorrect.sum()),
            'precision': float(correct.sum() * 100.0 / total) if total else 0.0,
            'entries_used': int(np.count_nonzero(correct + incorrect)),
            'storage_bits': self.num_entries * (self._history_length + 1),
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return (f"PredictorTable({self.num_entries} entries, "
                f"{self._history_length}-bit history)")
