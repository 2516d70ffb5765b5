"""
Prediction Sequencer

Pairs each branch fetch with its resolution one fetch later.

A branch is decoded and its real outcome computed when it is fetched; the
outcome is committed to the table entry when the next instruction is
fetched (or when the run ends). This models the one-fetch delay between
predicting a branch and knowing where it went.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from ..components.tables import PredictorTable
from ..decode.classifier import DecodedBranch, classify
from ..decode.evaluator import evaluate_with_registers, to_signed32
from ..errors import SequencingViolation

logger = logging.getLogger(__name__)

RegisterReader = Callable[[int], int]


class SequencerState(Enum):
    IDLE = 'idle'
    AWAITING_RESOLUTION = 'awaiting_resolution'


@dataclass(frozen=True)
class BranchPrediction:
    """A branch was fetched and looked up in the table."""
    address: int
    index: int
    branch: DecodedBranch
    predicted: bool
    taken: bool          # Real outcome, computed eagerly
    target: int


@dataclass(frozen=True)
class BranchResolution:
    """A pending branch was committed to the table."""
    address: int
    index: int
    predicted: bool
    taken: bool

    @property
    def correct(self) -> bool:
        return self.predicted == self.taken


@dataclass(frozen=True)
class _PendingBranch:
    address: int
    taken: bool
    generation: int


class SequencerListener:
    """Receives branch events from a PredictionSequencer."""

    def branch_predicted(self, prediction: BranchPrediction) -> None:
        pass

    def branch_resolved(self, resolution: BranchResolution) -> None:
        pass


class PredictionSequencer:
    """
    Drives the table from a stream of instruction fetches.

    At most one branch is pending at a time. On every fetch the pending
    branch, if any, is resolved first; then the fetched word is classified
    and, if it is a branch, becomes the new pending branch.

    The sequencer is not thread-safe. The host must serialize fetch
    delivery against table reconfiguration.
    """

    def __init__(self, table: PredictorTable, read_register: RegisterReader,
                 strict_bgtz: bool = True):
        """
        Initialize the sequencer.

        Args:
            table: Table to predict from and commit to
            read_register: Returns the signed value of register 0..31
            strict_bgtz: Evaluate bgtz/bgtzl as rs > 0 (False: rs >= 0)
        """
        self.table = table
        self.read_register = read_register
        self.strict_bgtz = strict_bgtz
        self._pending: Optional[_PendingBranch] = None
        self._listeners: List[SequencerListener] = []

        self.fetches = 0
        self.branches = 0
        self.resolved = 0

    def add_listener(self, listener: SequencerListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SequencerListener) -> None:
        self._listeners.remove(listener)

    @property
    def state(self) -> SequencerState:
        if self._pending is None:
            return SequencerState.IDLE
        return SequencerState.AWAITING_RESOLUTION

    @property
    def pending_address(self) -> Optional[int]:
        return None if self._pending is None else self._pending.address

    @property
    def pending_outcome(self) -> Optional[bool]:
        return None if self._pending is None else self._pending.taken

    def on_fetch(self, address: int, word: Optional[int]) -> Optional[BranchResolution]:
        """
        Handle one executed instruction fetch.

        Args:
            address: Address the instruction was fetched from
            word: Instruction word, or None when the fetch fell past the
                end of the program (only resolves the pending branch)

        Returns:
            The resolution committed by this fetch, if any

        Raises:
            RangeError: If a branch address maps to no table entry. The
                offending branch is dropped.
        """
        self.fetches += 1
        resolution = self.flush()

        if word is not None:
            branch = classify(word)
            if branch is not None:
                self._dispatch(address, branch)

        return resolution

    def flush(self) -> Optional[BranchResolution]:
        """
        Commit the pending branch, if any.

        Called on every fetch and once more when the fetch stream ends, so
        that the last branch of a run still updates its entry.
        """
        pending = self._pending
        if pending is None:
            return None
        self._pending = None

        if pending.generation != self.table.generation:
            logger.warning("Table reconfigured, dropping pending branch at 0x%08x",
                           pending.address & 0xFFFFFFFF)
            return None

        index = self.table.index_for(pending.address)
        predicted = self.table.prediction_at(index)
        resolution = BranchResolution(address=pending.address, index=index,
                                      predicted=predicted, taken=pending.taken)

        logger.debug("branch %s, prediction was %s",
                     'taken' if pending.taken else 'not taken',
                     'correct' if resolution.correct else 'incorrect')
        # Listeners see the entry before the update; the commit happens even if one raises
        try:
            for listener in self._listeners:
                listener.branch_resolved(resolution)
        finally:
            self.table.update_at(index, pending.taken)
            self.resolved += 1
        return resolution

    def reset(self) -> None:
        """Forget the pending branch and the counters."""
        if self._pending is not None:
            logger.warning("Discarding pending branch at 0x%08x",
                           self._pending.address & 0xFFFFFFFF)
        self._pending = None
        self.fetches = 0
        self.branches = 0
        self.resolved = 0

    def _dispatch(self, address: int, branch: DecodedBranch) -> None:
        # Addresses are 32-bit signed, so the upper half of memory is rejected here
        address = to_signed32(address)
        index = self.table.index_for(address)

        outcome = evaluate_with_registers(branch, self.read_register, address,
                                          self.strict_bgtz)
        predicted = self.table.prediction_at(index)
        self._mark_pending(address, outcome.taken)
        self.branches += 1

        logger.debug("instruction %s at address 0x%08x, maps to index %d",
                     branch.assembly(), address, index)
        logger.debug("branches to address 0x%08x", outcome.target & 0xFFFFFFFF)
        logger.debug("prediction is: %s...", 'take' if predicted else 'do not take')

        prediction = BranchPrediction(address=address, index=index, branch=branch,
                                      predicted=predicted, taken=outcome.taken,
                                      target=outcome.target)
        for listener in self._listeners:
            listener.branch_predicted(prediction)

    def _mark_pending(self, address: int, taken: bool) -> None:
        if self._pending is not None:
            raise SequencingViolation(
                f"Branch at 0x{address & 0xFFFFFFFF:08x} dispatched while branch at "
                f"0x{self._pending.address & 0xFFFFFFFF:08x} is unresolved")
        self._pending = _PendingBranch(address=address, taken=taken,
                                       generation=self.table.generation)
