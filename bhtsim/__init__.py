# Branch History Table Simulator Package
"""
Branch History Table (BHT) Simulator

A direct-mapped branch history table driven by instruction fetches:
- 1 or 2 outcome history per entry
- MIPS conditional branch decoding and evaluation
- One-fetch delayed resolution of predicted branches
"""

from .components import PredictorEntry, PredictorTable, RegisterFile
from .decode import BranchKind, DecodedBranch, classify, evaluate
from .errors import (
    BHTError,
    ConfigurationError,
    RangeError,
    SequencingViolation,
    TraceFormatError,
)
from .simulation import (
    BHTSimulator,
    MetricsCollector,
    PredictionSequencer,
    SimulationConfig,
    SimulationResults,
)

__version__ = "1.0.0"

__all__ = [
    'PredictorEntry',
    'PredictorTable',
    'RegisterFile',
    'BranchKind',
    'DecodedBranch',
    'classify',
    'evaluate',
    'BHTError',
    'ConfigurationError',
    'RangeError',
    'SequencingViolation',
    'TraceFormatError',
    'BHTSimulator',
    'MetricsCollector',
    'PredictionSequencer',
    'SimulationConfig',
    'SimulationResults',
]
