"""
Branch History Table Entry

A single slot of the table: a short history of branch outcomes,
the current prediction and the hit/miss statistics of that slot.
"""

import numpy as np


class PredictorEntry:
    """
    One entry of the Branch History Table.

    The history holds the last ``history_length`` outcomes, oldest at
    index 0 and most recent at index ``history_length - 1``. The entry
    changes its prediction only when it mispredicts and the whole history
    agrees with the outcome just recorded, i.e. after ``history_length``
    mispredictions in a row.
    """

    def __init__(self, history_length: int, initial_bias: bool):
        """
        Initialize the entry.

        Args:
            history_length: Number of past outcomes to remember
            initial_bias: Initial prediction (True = take branch)
        """
        initial_bias = bool(initial_bias)
        self._history = np.full(history_length, initial_bias, dtype=bool)
        self._prediction = initial_bias
        self._correct = 0
        self._incorrect = 0

    def predict(self) -> bool:
        """Current prediction (True = take branch)."""
        return self._prediction

    def update(self, outcome: bool) -> None:
        """
        Record the real outcome of a branch mapped to this entry.

        Args:
            outcome: True if the branch was taken
        """
        outcome = bool(outcome)

        # Shift out the oldest outcome, append the newest
        self._history[:-1] = self._history[1:]
        self._history[-1] = outcome

        if outcome == self._prediction:
            self._correct += 1
            return

        self._incorrect += 1
        if np.all(self._history == outcome):
            self._prediction = outcome

    @property
    def history(self) -> np.ndarray:
        """Copy of the outcome history, oldest first."""
        return self._history.copy()

    @property
    def history_length(self) -> int:
        return len(self._history)

    @property
    def correct_count(self) -> int:
        return self._correct

    @property
    def incorrect_count(self) -> int:
        return self._incorrect

    @property
    def precision(self) -> float:
        """Percentage of correct predictions (0 before the first update)."""
        total = self._correct + self._incorrect
        if total == 0:
            return 0.0
        return self._correct * 100.0 / total

    def history_as_str(self) -> str:
        return ', '.join('T' if taken else 'NT' for taken in self._history)

    def prediction_as_str(self) -> str:
        return 'TAKE' if self._prediction else 'NOT TAKE'

    def __repr__(self) -> str:
        return (f"PredictorEntry([{self.history_as_str()}] -> "
                f"{self.prediction_as_str()}, "
                f"{self._correct}/{self._incorrect})")
