"""
Metrics Collection and Analysis

Collects branch prediction statistics from sequencer events.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

import numpy as np

from .sequencer import BranchPrediction, BranchResolution, SequencerListener


@dataclass
class SimulationResults:
    """Container for simulation results."""
    trace_name: str
    fetches: int
    branches: int
    elapsed_time: float
    stats: Dict[str, Any]
    per_branch: Dict[int, Dict[str, Any]]
    table: List[Dict[str, Any]]
    config: Dict[str, Any]

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization."""
        return {
            'trace_name': self.trace_name,
            'fetches': self.fetches,
            'branches': self.branches,
            'elapsed_time': self.elapsed_time,
            'stats': self.stats,
            'per_branch': {f"0x{pc:08x}": s for pc, s in self.per_branch.items()},
            'table': self.table,
            'config': self.config,
        }

    def get_summary(self) -> str:
        """Get text summary of results."""
        lines = [
            f"Trace: {self.trace_name}",
            f"Fetches: {self.fetches:,}",
            f"Branches: {self.branches:,}",
            f"Time: {self.elapsed_time:.2f}s",
            f"Correct: {self.stats.get('correct', 0):,}",
            f"Incorrect: {self.stats.get('mispredictions', 0):,}",
            f"Accuracy: {self.stats.get('accuracy', 0)*100:.2f}%",
        ]
        return "\n".join(lines)


@dataclass
class BranchMetrics:
    """Metrics for a single branch address."""
    index: int
    total: int = 0
    correct: int = 0
    taken: int = 0

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total > 0 else 0.0


@dataclass
class PredictorMetrics:
    """Aggregate metrics over all resolved branches."""
    total: int = 0
    correct: int = 0
    mispredictions: int = 0
    taken_actual: int = 0
    taken_predicted: int = 0
    predicted: int = 0

    @property
    def accuracy(self) -> float:
        if self.total == 0:
            return 0.0
        return self.correct / self.total

    @property
    def misprediction_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.mispredictions / self.total

    def reset(self) -> None:
        self.total = 0
        self.correct = 0
        self.mispredictions = 0
        self.taken_actual = 0
        self.taken_predicted = 0
        self.predicted = 0


class MetricsCollector(SequencerListener):
    """
    Collects and computes branch prediction metrics.

    Attach to a PredictionSequencer with ``add_listener``.
    """

    def __init__(self, collect_per_branch: bool = True):
        self.collect_per_branch = collect_per_branch
        self._metrics = PredictorMetrics()
        self._per_branch: Dict[int, BranchMetrics] = {}
        self._resolution_log: List[bool] = []

    def branch_predicted(self, prediction: BranchPrediction) -> None:
        self._metrics.predicted += 1

    def branch_resolved(self, resolution: BranchResolution) -> None:
        metrics = self._metrics
        metrics.total += 1
        if resolution.correct:
            metrics.correct += 1
        else:
            metrics.mispredictions += 1
        if resolution.taken:
            metrics.taken_actual += 1
        if resolution.predicted:
            metrics.taken_predicted += 1
        self._resolution_log.append(resolution.correct)

        if self.collect_per_branch:
            branch = self._per_branch.get(resolution.address)
            if branch is None:
                branch = self._per_branch[resolution.address] = BranchMetrics(resolution.index)
            branch.total += 1
            if resolution.correct:
                branch.correct += 1
            if resolution.taken:
                branch.taken += 1

    def get_stats(self) -> Dict[str, Any]:
        """Get aggregate statistics."""
        m = self._metrics
        return {
            'predicted': m.predicted,
            'total': m.total,
            'correct': m.correct,
            'mispredictions': m.mispredictions,
            'accuracy': m.accuracy,
            'misprediction_rate': m.misprediction_rate,
            'taken_actual': m.taken_actual,
            'taken_predicted': m.taken_predicted,
        }

    def get_per_branch_stats(self) -> Dict[int, Dict[str, Any]]:
        """Get per-branch statistics keyed by branch address."""
        return {
            pc: {
                'index': m.index,
                'total': m.total,
                'correct': m.correct,
                'taken': m.taken,
                'accuracy': m.accuracy,
            }
            for pc, m in sorted(self._per_branch.items())
        }

    def get_aliased_indices(self) -> Dict[int, List[int]]:
        """Table indices shared by more than one branch address."""
        by_index: Dict[int, List[int]] = {}
        for pc, m in self._per_branch.items():
            by_index.setdefault(m.index, []).append(pc)
        return {idx: sorted(pcs) for idx, pcs in by_index.items() if len(pcs) > 1}

    def get_rolling_accuracy(self, window: int = 16) -> np.ndarray:
        """Accuracy over a sliding window of resolutions."""
        if not self._resolution_log:
            return np.zeros(0)
        hits = np.array(self._resolution_log, dtype=float)
        window = max(1, min(window, len(hits)))
        return np.convolve(hits, np.ones(window) / window, mode='valid')

    def reset(self) -> None:
        """Reset all metrics."""
        self._metrics.reset()
        self._per_branch.clear()
        self._resolution_log.clear()

    def get_comparison_table(self) -> str:
        """Get per-branch table as formatted string."""
        lines = [
            "Branch Statistics:",
            "-" * 60,
            f"{'Address':<12} {'Index':>6} {'Total':>8} {'Correct':>8} {'Accuracy':>12}",
            "-" * 60,
        ]
        for pc, m in sorted(self._per_branch.items()):
            lines.append(
                f"0x{pc:08x}   {m.index:>6} {m.total:>8,} {m.correct:>8,} "
                f"{m.accuracy*100:>11.2f}%"
            )
        lines.append("-" * 60)
        return "\n".join(lines)


class ResultsExporter:
    """Export simulation results to various formats."""

    @staticmethod
    def to_csv(results: SimulationResults, filepath: str) -> None:
        """Export the final table state to CSV."""
        import csv

        with open(filepath, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(['Index', 'History', 'Prediction', 'Correct',
                             'Incorrect', 'Precision'])
            for row in results.table:
                writer.writerow([row['index'], row['history'], row['prediction'],
                                 row['correct'], row['incorrect'],
                                 f"{row['precision']:.2f}"])
