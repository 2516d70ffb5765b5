import csv
import shutil
import tempfile
import unittest
from pathlib import Path

import numpy as np

from bhtsim.components.registers import RegisterFile
from bhtsim.components.tables import PredictorTable
from bhtsim.simulation.metrics import MetricsCollector, ResultsExporter
from bhtsim.simulation.sequencer import PredictionSequencer
from bhtsim.simulation.simulator import BHTSimulator
from bhtsim.trace.parser import nested_loop_trace

BEQ_4_5 = 0x10850003        # beq $4, $5, 3 (taken, registers are zero)
BNE_4_5 = 0x14850003        # bne $4, $5, 3 (not taken)
ADD = 0x01094020            # add $8, $8, $9


class MetricsCollectorTestCase(unittest.TestCase):
    def setUp(self):
        self.table = PredictorTable(16, 1, False)
        self.registers = RegisterFile()
        self.sequencer = PredictionSequencer(self.table, self.registers.read)
        self.metrics = MetricsCollector()
        self.sequencer.add_listener(self.metrics)

    def test_empty_stats(self):
        stats = self.metrics.get_stats()
        self.assertEqual(0, stats['total'])
        self.assertEqual(0.0, stats['accuracy'])
        self.assertEqual(0.0, stats['misprediction_rate'])
        self.assertEqual(0, len(self.metrics.get_rolling_accuracy()))

    def test_aggregate_stats(self):
        self.sequencer.on_fetch(100, BEQ_4_5)
        self.sequencer.on_fetch(200, BNE_4_5)
        self.sequencer.on_fetch(204, ADD)

        stats = self.metrics.get_stats()
        self.assertEqual(2, stats['predicted'])
        self.assertEqual(2, stats['total'])
        self.assertEqual(1, stats['correct'])
        self.assertEqual(1, stats['mispredictions'])
        self.assertEqual(0.5, stats['accuracy'])
        self.assertEqual(1, stats['taken_actual'])
        self.assertEqual(0, stats['taken_predicted'])

    def test_pending_branch_is_predicted_but_not_resolved(self):
        self.sequencer.on_fetch(100, BEQ_4_5)
        stats = self.metrics.get_stats()
        self.assertEqual(1, stats['predicted'])
        self.assertEqual(0, stats['total'])

    def test_per_branch_stats(self):
        for _ in range(3):
            self.sequencer.on_fetch(100, BEQ_4_5)
        self.sequencer.flush()

        per_branch = self.metrics.get_per_branch_stats()
        self.assertEqual([100], list(per_branch))
        self.assertEqual(self.table.index_for(100), per_branch[100]['index'])
        self.assertEqual(3, per_branch[100]['total'])
        self.assertEqual(2, per_branch[100]['correct'])
        self.assertEqual(3, per_branch[100]['taken'])

    def test_per_branch_collection_can_be_disabled(self):
        metrics = MetricsCollector(collect_per_branch=False)
        self.sequencer.add_listener(metrics)
        self.sequencer.on_fetch(100, BEQ_4_5)
        self.sequencer.flush()

        self.assertEqual({}, metrics.get_per_branch_stats())
        self.assertEqual(1, metrics.get_stats()['total'])

    def test_aliased_indices(self):
        # 100 and 164 are 4 * 16 bytes apart and share entry 9
        self.sequencer.on_fetch(100, BEQ_4_5)
        self.sequencer.on_fetch(164, BNE_4_5)
        self.sequencer.on_fetch(300, BEQ_4_5)
        self.sequencer.flush()

        self.assertEqual({9: [100, 164]}, self.metrics.get_aliased_indices())
        stats = self.metrics.get_stats()
        # the flip caused by 100 makes 164 mispredict
        self.assertEqual(0, self.metrics.get_per_branch_stats()[164]['correct'])
        self.assertEqual(1, stats['taken_predicted'])

    def test_rolling_accuracy(self):
        for _ in range(4):
            self.sequencer.on_fetch(100, BEQ_4_5)
        self.sequencer.flush()

        np.testing.assert_allclose([0.5, 1.0, 1.0], self.metrics.get_rolling_accuracy(2))
        np.testing.assert_allclose([0.75], self.metrics.get_rolling_accuracy(100))

    def test_comparison_table(self):
        self.sequencer.on_fetch(100, BEQ_4_5)
        self.sequencer.flush()

        text = self.metrics.get_comparison_table()
        self.assertIn("Branch Statistics:", text)
        self.assertIn("0x00000064", text)

    def test_reset(self):
        self.sequencer.on_fetch(100, BEQ_4_5)
        self.sequencer.flush()
        self.metrics.reset()

        self.assertEqual(0, self.metrics.get_stats()['predicted'])
        self.assertEqual({}, self.metrics.get_per_branch_stats())
        self.assertEqual(0, len(self.metrics.get_rolling_accuracy()))

    def test_removed_listener_stops_counting(self):
        self.sequencer.remove_listener(self.metrics)
        self.sequencer.on_fetch(100, BEQ_4_5)
        self.sequencer.flush()
        self.assertEqual(0, self.metrics.get_stats()['predicted'])


class ResultsExporterTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.tmp_dir)

    def test_table_csv(self):
        results = BHTSimulator().run_on_trace(nested_loop_trace())
        csv_path = self.tmp_dir / 'table.csv'
        ResultsExporter.to_csv(results, str(csv_path))

        with open(csv_path, newline='') as f:
            rows = list(csv.reader(f))
        self.assertEqual('Index', rows[0][0])
        self.assertEqual(17, len(rows))
        self.assertEqual(['3', 'NT', 'NOT TAKE', '6', '6', '50.00'], rows[4])

    def test_summary_mentions_accuracy(self):
        results = BHTSimulator().run_on_trace(nested_loop_trace(), trace_name='loop')
        summary = results.get_summary()
        self.assertIn("Trace: loop", summary)
        self.assertIn("Branches: 15", summary)


if __name__ == '__main__':
    unittest.main()
