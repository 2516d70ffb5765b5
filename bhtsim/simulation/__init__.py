# Simulation Package
from .sequencer import (
    BranchPrediction,
    BranchResolution,
    PredictionSequencer,
    SequencerListener,
    SequencerState,
)
from .metrics import MetricsCollector, SimulationResults, ResultsExporter
from .simulator import BHTSimulator, SimulationConfig

__all__ = [
    'BranchPrediction',
    'BranchResolution',
    'PredictionSequencer',
    'SequencerListener',
    'SequencerState',
    'MetricsCollector',
    'SimulationResults',
    'ResultsExporter',
    'BHTSimulator',
    'SimulationConfig',
]
