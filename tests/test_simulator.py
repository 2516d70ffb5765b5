import csv
import gzip
import json
import logging
import shutil
import tempfile
import threading
import unittest
from pathlib import Path

from bhtsim.components.registers import RegisterFile, register_number
from bhtsim.errors import ConfigurationError, TraceFormatError
from bhtsim.simulation.simulator import BHTSimulator, SimulationConfig
from bhtsim.trace.formats import FetchRecord
from bhtsim.trace.parser import TraceParser, create_sample_trace, nested_loop_trace
from bhtsim.utils.helpers import load_config, save_config, save_results, setup_logging

BEQ_4_5 = 0x10850003        # beq $4, $5, 3
ADD = 0x01094020            # add $8, $8, $9
DEFAULT_CONFIG = Path(__file__).parent.parent / 'config' / 'default.yaml'

# Table indices of the nested loop branches at 0x0040000c and 0x00400014
INNER_INDEX = 3
OUTER_INDEX = 5


class SimulatorTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.tmp_dir)

    def test_nested_loop_with_one_bit_history(self):
        simulator = BHTSimulator(SimulationConfig(history_length=1))
        results = simulator.run_on_trace(nested_loop_trace(outer=3, inner=4))

        self.assertEqual(35, results.fetches)
        self.assertEqual(15, results.branches)
        self.assertEqual(15, results.stats['total'])
        self.assertEqual(7, results.stats['correct'])
        self.assertEqual((6, 6), (simulator.table.correct_of_entry(INNER_INDEX),
                                  simulator.table.incorrect_of_entry(INNER_INDEX)))
        self.assertEqual((1, 2), (simulator.table.correct_of_entry(OUTER_INDEX),
                                  simulator.table.incorrect_of_entry(OUTER_INDEX)))

    def test_nested_loop_with_two_bit_history(self):
        simulator = BHTSimulator(SimulationConfig(history_length=2))
        simulator.run_on_trace(nested_loop_trace(outer=3, inner=4))

        self.assertEqual((7, 5), (simulator.table.correct_of_entry(INNER_INDEX),
                                  simulator.table.incorrect_of_entry(INNER_INDEX)))
        self.assertEqual((0, 3), (simulator.table.correct_of_entry(OUTER_INDEX),
                                  simulator.table.incorrect_of_entry(OUTER_INDEX)))
        self.assertTrue(simulator.table.prediction_of_entry(INNER_INDEX))

    def test_legacy_bgtz_changes_loop_exit(self):
        simulator = BHTSimulator(SimulationConfig(strict_bgtz=False))
        results = simulator.run_on_trace(nested_loop_trace(outer=3, inner=4))
        # rs >= 0 also takes the exit branch when the counter hits zero
        self.assertEqual(3, results.per_branch[0x00400014]['taken'])

    def test_last_branch_of_trace_is_committed(self):
        simulator = BHTSimulator()
        trace = [FetchRecord(96, ADD), FetchRecord(100, BEQ_4_5)]
        results = simulator.run_on_trace(trace)

        self.assertEqual(1, results.stats['total'])
        self.assertEqual(1, simulator.table.incorrect_of_entry(simulator.table.index_for(100)))

    def test_run_from_file_matches_in_memory(self):
        trace_path = self.tmp_dir / 'loop.trace'
        create_sample_trace(trace_path)

        from_file = BHTSimulator().run(trace_path)
        in_memory = BHTSimulator().run_on_trace(nested_loop_trace())
        self.assertEqual(in_memory.stats, from_file.stats)
        self.assertEqual(in_memory.table, from_file.table)

    def test_compressed_trace(self):
        trace_path = self.tmp_dir / 'loop.trace.gz'
        with gzip.open(trace_path, 'wt') as f:
            for record in nested_loop_trace():
                f.write(record.to_line() + '\n')

        records = TraceParser().load_trace(trace_path)
        self.assertEqual(len(nested_loop_trace()), len(records))
        self.assertEqual('gz', TraceParser().get_trace_info(trace_path).compression)

    def test_trace_parsing(self):
        trace_path = self.tmp_dir / 'small.trace'
        trace_path.write_text("# comment\n"
                              "\n"
                              "0x00400000 0x10850003 $a0=5 a1=-1 $8=0x10  # beq\n"
                              "4194308 -\n")
        first, second = TraceParser().parse_file(trace_path)

        self.assertEqual(0x00400000, first.address)
        self.assertEqual(BEQ_4_5, first.word)
        self.assertEqual({4: 5, 5: -1, 8: 16}, first.registers)
        self.assertTrue(second.past_end)
        self.assertEqual(0x00400004, second.address)

    def test_bad_trace_lines(self):
        bad_lines = ['0x100', '0x100 zz', '0x100 0x0 $t0', '0x100 0x0 $foo=1',
                     '0x100 0x100000000', '-4 0x0']
        for line in bad_lines:
            trace_path = self.tmp_dir / 'bad.trace'
            trace_path.write_text("0x0 0x0\n" + line + "\n")
            with self.assertRaises(TraceFormatError) as ctx:
                list(TraceParser().parse_file(trace_path))
            self.assertEqual(2, ctx.exception.line_num, line)

    def test_leading_zeros_are_decimal(self):
        trace_path = self.tmp_dir / 'decimal.trace'
        trace_path.write_text("0400 0x10850003 $t0=010\n"
                              "0x0400 -\n")
        first, second = TraceParser().parse_file(trace_path)

        self.assertEqual(400, first.address)
        self.assertEqual({8: 10}, first.registers)
        self.assertEqual(0x400, second.address)

    def test_trace_statistics(self):
        stats = nested_loop_trace(outer=3, inner=4).get_statistics()
        self.assertEqual(35, stats['count'])
        self.assertEqual(15, stats['branches'])
        self.assertEqual(1, stats['past_end'])

    def test_configure_resets_state(self):
        simulator = BHTSimulator()
        simulator.on_fetch(100, BEQ_4_5)
        simulator.configure(num_entries=32)

        self.assertIsNone(simulator.finish())
        self.assertEqual(32, simulator.table.num_entries)
        self.assertEqual(32, simulator.config.num_entries)
        self.assertEqual(1, simulator.table.history_length)

    def test_invalid_configure_keeps_table(self):
        simulator = BHTSimulator()
        with self.assertRaises(ConfigurationError):
            simulator.configure(num_entries=24)
        self.assertEqual(16, simulator.table.num_entries)

    def test_reconfigure_from_another_thread(self):
        simulator = BHTSimulator()
        errors = []

        def reconfigure():
            try:
                for i in range(50):
                    simulator.configure(num_entries=8 << (i % 3), history_length=1 + i % 2)
            except Exception as e:
                errors.append(e)

        thread = threading.Thread(target=reconfigure)
        thread.start()
        for i in range(2000):
            simulator.on_fetch(100 + 4 * (i % 8), BEQ_4_5 if i % 2 else ADD)
        thread.join()
        simulator.finish()

        self.assertEqual([], errors)
        self.assertIn(simulator.table.num_entries, (8, 16, 32))

    def test_config_from_dict(self):
        config = SimulationConfig.from_dict({'num_entries': 64, 'history_length': 2})
        self.assertEqual(64, config.num_entries)
        with self.assertRaises(ConfigurationError):
            SimulationConfig.from_dict({'entries': 64})
        with self.assertRaises(ConfigurationError):
            BHTSimulator({'num_entries': 48})

    def test_default_yaml_matches_defaults(self):
        self.assertEqual(SimulationConfig(), SimulationConfig.from_dict(load_config(DEFAULT_CONFIG)))

    def test_config_round_trip_through_yaml(self):
        config_path = self.tmp_dir / 'bht.yaml'
        save_config({'num_entries': 4, 'initial_bias': True}, config_path)
        simulator = BHTSimulator(load_config(config_path))
        self.assertEqual(4, simulator.table.num_entries)
        self.assertTrue(simulator.table.prediction_of_entry(0))

    def test_missing_config_file(self):
        with self.assertRaises(FileNotFoundError):
            load_config(self.tmp_dir / 'missing.yaml')

    def test_save_results(self):
        results = BHTSimulator().run_on_trace(nested_loop_trace())
        paths = save_results(results.to_dict(), self.tmp_dir, name='bht',
                             formats=('json', 'csv', 'yaml'))

        self.assertEqual({'json', 'csv', 'yaml'}, set(paths))
        with open(paths['json']) as f:
            data = json.load(f)
        self.assertEqual(15, data['branches'])
        self.assertIn('0x0040000c', data['per_branch'])
        self.assertEqual(16, len(data['table']))

    def test_results_csv_has_branch_and_table_blocks(self):
        results = BHTSimulator().run_on_trace(nested_loop_trace())
        paths = save_results(results.to_dict(), self.tmp_dir, name='bht', formats=('csv',))

        with open(paths['csv'], newline='') as f:
            rows = list(csv.reader(f))
        self.assertIn(['fetches', '35'], rows)
        self.assertIn(['stats.correct', '7'], rows)
        self.assertIn(['config.num_entries', '16'], rows)

        branch_header = rows.index(['address', 'index', 'total', 'correct', 'taken', 'accuracy'])
        self.assertEqual(['0x0040000c', '3', '12', '6'], rows[branch_header + 1][:4])
        table_header = rows.index(['index', 'history', 'prediction',
                                   'correct', 'incorrect', 'precision'])
        self.assertEqual(16, len(rows) - table_header - 1)

    def test_setup_logging_replaces_handlers(self):
        logger = setup_logging('DEBUG')
        try:
            setup_logging('warning', self.tmp_dir / 'logs' / 'bht.log')
            self.assertEqual(2, len(logger.handlers))
            self.assertEqual(logging.WARNING, logger.level)
            with self.assertRaises(ConfigurationError):
                setup_logging('LOUD')
        finally:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()
            logger.setLevel(logging.NOTSET)


class RegisterFileTestCase(unittest.TestCase):
    def setUp(self):
        self.registers = RegisterFile()

    def test_zero_register_is_hardwired(self):
        self.registers.write('$zero', 5)
        self.assertEqual(0, self.registers.read(0))

    def test_values_wrap_to_signed_32_bits(self):
        self.registers.write('t0', 0xFFFFFFFF)
        self.assertEqual(-1, self.registers.read(8))
        self.registers.write('t0', 0x80000000)
        self.assertEqual(-0x80000000, self.registers(8))

    def test_register_names(self):
        self.assertEqual(8, register_number('$t0'))
        self.assertEqual(8, register_number('t0'))
        self.assertEqual(8, register_number('$8'))
        self.assertEqual(8, register_number('r8'))
        self.assertEqual(30, register_number('s8'))
        self.assertEqual(31, register_number(31))
        for bad in ('$foo', '32', -1, 'r'):
            with self.assertRaises(ConfigurationError):
                register_number(bad)


if __name__ == '__main__':
    unittest.main()
