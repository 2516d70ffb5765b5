"""
Branch History Table Simulator

Host facade around the prediction engine: owns the table, the sequencer
and the register file, serializes reconfiguration against fetch delivery,
and replays fetch traces.
"""

import logging
import threading
import time
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

from tqdm import tqdm

from ..components.registers import RegisterFile
from ..components.tables import PredictorTable
from ..errors import ConfigurationError
from ..trace.formats import FetchRecord
from ..trace.parser import TraceParser
from .metrics import MetricsCollector, SimulationResults
from .sequencer import BranchResolution, PredictionSequencer, SequencerListener

logger = logging.getLogger(__name__)

BHT_DEFAULT_SIZE = 16
BHT_DEFAULT_HISTORY = 1
BHT_DEFAULT_INITVAL = False


@dataclass
class SimulationConfig:
    """Configuration for simulation run."""
    num_entries: int = BHT_DEFAULT_SIZE
    history_length: int = BHT_DEFAULT_HISTORY
    initial_bias: bool = BHT_DEFAULT_INITVAL
    strict_bgtz: bool = True
    verbose: bool = False
    collect_per_branch_stats: bool = True

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'SimulationConfig':
        """
        Build a config from a dictionary, e.g. a loaded YAML file.

        Raises:
            ConfigurationError: On unknown keys
        """
        known = {f.name for f in fields(cls)}
        unknown = set(config) - known
        if unknown:
            raise ConfigurationError(f"Unknown config keys: {sorted(unknown)}")
        return cls(**config)


class BHTSimulator:
    """
    Branch History Table Simulator.

    Fetches are delivered with ``on_fetch`` (or replayed from a trace with
    ``run``); the table can be reconfigured at any time from another
    thread. Both paths hold the same lock, so a reconfiguration never
    lands in the middle of a fetch. A branch still pending when the table
    is reconfigured is dropped.
    """

    def __init__(self, config: Optional[Union[SimulationConfig, dict]] = None):
        """
        Initialize simulator.

        Args:
            config: Simulation configuration
        """
        if config is None:
            self.config = SimulationConfig()
        elif isinstance(config, dict):
            self.config = SimulationConfig.from_dict(config)
        else:
            self.config = config

        self._lock = threading.RLock()
        self.registers = RegisterFile()
        self.table = PredictorTable(self.config.num_entries,
                                    self.config.history_length,
                                    self.config.initial_bias)
        self.sequencer = PredictionSequencer(self.table, self.registers.read,
                                             strict_bgtz=self.config.strict_bgtz)
        self.metrics = MetricsCollector(self.config.collect_per_branch_stats)
        self.sequencer.add_listener(self.metrics)

    def add_listener(self, listener: SequencerListener) -> None:
        with self._lock:
            self.sequencer.add_listener(listener)

    def configure(self, num_entries: Optional[int] = None,
                  history_length: Optional[int] = None,
                  initial_bias: Optional[bool] = None) -> None:
        """
        Reconfigure the table. Omitted values keep their current setting.

        Raises:
            ConfigurationError: If the new geometry is invalid; the table
                is left unchanged
        """
        with self._lock:
            num_entries = self.table.num_entries if num_entries is None else num_entries
            history_length = self.table.history_length if history_length is None else history_length
            initial_bias = self.table.initial_bias if initial_bias is None else initial_bias

            self.table.configure(num_entries, history_length, initial_bias)
            self.sequencer.reset()
            self.metrics.reset()

            self.config.num_entries = self.table.num_entries
            self.config.history_length = self.table.history_length
            self.config.initial_bias = self.table.initial_bias

    def reset(self) -> None:
        """Reinitialize the table with the current settings and clear the registers."""
        with self._lock:
            self.configure()
            self.registers.reset()

    def on_fetch(self, address: int, word: Optional[int]) -> Optional[BranchResolution]:
        """Deliver one executed instruction fetch to the engine."""
        with self._lock:
            return self.sequencer.on_fetch(address, word)

    def finish(self) -> Optional[BranchResolution]:
        """Signal the end of the fetch stream, committing any pending branch."""
        with self._lock:
            return self.sequencer.flush()

    def run(self, trace_path: Union[str, Path],
            max_fetches: Optional[int] = None) -> SimulationResults:
        """
        Replay a fetch trace file.

        Args:
            trace_path: Path to trace file
            max_fetches: Stop after this many fetches (None = all)

        Returns:
            SimulationResults with all metrics
        """
        trace_path = Path(trace_path)
        parser = TraceParser()
        info = parser.get_trace_info(trace_path)
        logger.info("Replaying %s (%s, %s bytes)", trace_path.name, info.format,
                    f"{info.size_bytes:,}")
        return self._run(parser.parse_file(trace_path, max_fetches), str(trace_path))

    def run_on_trace(self, trace: Iterable[FetchRecord],
                     trace_name: str = "memory") -> SimulationResults:
        """Replay pre-loaded fetch records."""
        return self._run(trace, trace_name)

    def _run(self, records: Iterable[FetchRecord], trace_name: str) -> SimulationResults:
        self.reset()
        start_time = time.time()

        if self.config.verbose:
            records = tqdm(records, desc="Simulating", unit="fetches")

        try:
            for record in records:
                with self._lock:
                    self.registers.update(record.registers)
                    self.sequencer.on_fetch(record.address, record.word)
        finally:
            self.finish()

        elapsed_time = time.time() - start_time
        results = self._compile_results(trace_name, elapsed_time)
        logger.info("Finished %s: %d branches, %.2f%% correct", trace_name,
                    results.branches, results.stats.get('accuracy', 0) * 100)
        return results

    def _compile_results(self, trace_name: str, elapsed_time: float) -> SimulationResults:
        with self._lock:
            return SimulationResults(
                trace_name=trace_name,
                fetches=self.sequencer.fetches,
                branches=self.sequencer.branches,
                elapsed_time=elapsed_time,
                stats=self.metrics.get_stats(),
                per_branch=self.metrics.get_per_branch_stats(),
                table=[row.to_dict() for row in self.table.rows()],
                config=asdict(self.config),
            )
