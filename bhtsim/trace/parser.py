"""
Trace Parser

Reads fetch traces, plain or compressed, and provides a streaming interface.
"""

import bz2
import gzip
import lzma
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Union

from .formats import FetchRecord, FetchTextFormat, TraceFormat
from ..decode.classifier import is_branch


@dataclass
class TraceInfo:
    """Information about a trace file."""
    path: str
    format: str
    compression: Optional[str]
    size_bytes: int


class FetchTrace:
    """
    Container for fetch trace data.

    Can be used for streaming or caching trace data.
    """

    def __init__(self, records: Optional[List[FetchRecord]] = None):
        self._records = records or []

    def add(self, record: FetchRecord) -> None:
        """Add a fetch record."""
        self._records.append(record)

    def __iter__(self) -> Iterator[FetchRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __getitem__(self, idx: int) -> FetchRecord:
        return self._records[idx]

    def get_statistics(self) -> dict:
        """Get trace statistics."""
        if not self._records:
            return {'count': 0}

        words = [r.word for r in self._records if r.word is not None]
        branches = sum(1 for w in words if is_branch(w))

        return {
            'count': len(self._records),
            'branches': branches,
            'branch_ratio': branches / len(self._records),
            'unique_addresses': len(set(r.address for r in self._records)),
            'past_end': len(self._records) - len(words),
        }


class TraceParser:
    """
    Fetch trace parser with transparent decompression.
    """

    # Supported formats
    FORMATS = {
        'text': FetchTextFormat,
    }

    # Compression handlers
    COMPRESSION = {
        '.gz': gzip.open,
        '.gzip': gzip.open,
        '.xz': lzma.open,
        '.bz2': bz2.open,
        '.lzma': lzma.open,
    }

    def __init__(self, format_name: str = 'text'):
        """
        Initialize parser.

        Args:
            format_name: Trace format name
        """
        if format_name.lower() not in self.FORMATS:
            raise ValueError(f"Unknown trace format: {format_name}")
        self.format_name = format_name.lower()

    def parse_file(self, filepath: Union[str, Path],
                   max_fetches: Optional[int] = None) -> Iterator[FetchRecord]:
        """
        Parse a trace file.

        Args:
            filepath: Path to trace file
            max_fetches: Maximum fetches to read (None = all)

        Yields:
            FetchRecord for each fetch
        """
        filepath = Path(filepath)
        format_obj = self._get_format()

        compression_ext = self._compression_of(filepath)
        if compression_ext:
            file_handle = self.COMPRESSION[compression_ext](filepath, 'rt')
        else:
            file_handle = open(filepath, 'r')

        try:
            for count, record in enumerate(format_obj.parse(file_handle), 1):
                yield record
                if max_fetches and count >= max_fetches:
                    break
        finally:
            file_handle.close()

    def load_trace(self, filepath: Union[str, Path],
                   max_fetches: Optional[int] = None) -> FetchTrace:
        """Load entire trace into memory."""
        return FetchTrace(list(self.parse_file(filepath, max_fetches)))

    def get_trace_info(self, filepath: Union[str, Path]) -> TraceInfo:
        """Get information about a trace file."""
        filepath = Path(filepath)
        compression = self._compression_of(filepath)

        return TraceInfo(
            path=str(filepath),
            format=self._get_format().get_format_name(),
            compression=compression[1:] if compression else None,
            size_bytes=filepath.stat().st_size,
        )

    def _get_format(self) -> TraceFormat:
        return self.FORMATS[self.format_name]()

    def _compression_of(self, filepath: Path) -> Optional[str]:
        suffix = filepath.suffix.lower()
        return suffix if suffix in self.COMPRESSION else None


def _i_type(opcode: int, rs: int, rt: int, imm: int) -> int:
    return (opcode << 26) | (rs << 21) | (rt << 16) | (imm & 0xFFFF)


def nested_loop_trace(outer: int = 3, inner: int = 4,
                      base: int = 0x00400000) -> FetchTrace:
    """
    Build the fetch trace of a nested loop program.

        addi $t0, $zero, outer
    L1: addi $t1, $zero, inner
    L2: addi $t1, $t1, -1
        bne  $t1, $zero, L2
        addi $t0, $t0, -1
        bgtz $t0, L1

    The inner branch is taken inner-1 times then falls through once per
    outer iteration, which a 2-bit history rides out and a 1-bit history
    mispredicts twice.
    """
    if outer < 1 or inner < 1:
        raise ValueError("Loop counts must be positive")

    t0, t1 = 8, 9
    addi, bne, bgtz = 0x08, 0x05, 0x07

    trace = FetchTrace()
    writes = {}

    def fetch(offset: int, word: Optional[int]) -> None:
        trace.add(FetchRecord(address=base + offset, word=word, registers=dict(writes)))
        writes.clear()

    fetch(0x00, _i_type(addi, 0, t0, outer))
    writes[t0] = count_outer = outer
    while True:
        fetch(0x04, _i_type(addi, 0, t1, inner))
        writes[t1] = count_inner = inner
        while True:
            fetch(0x08, _i_type(addi, t1, t1, -1))
            count_inner -= 1
            writes[t1] = count_inner
            fetch(0x0C, _i_type(bne, t1, 0, -2))
            if count_inner == 0:
                break
        fetch(0x10, _i_type(addi, t0, t0, -1))
        count_outer -= 1
        writes[t0] = count_outer
        fetch(0x14, _i_type(bgtz, t0, 0, -5))
        if count_outer == 0:
            break
    fetch(0x18, None)

    return trace


def create_sample_trace(filepath: Union[str, Path],
                        outer: int = 3, inner: int = 4) -> None:
    """
    Write a nested loop fetch trace for testing.

    Args:
        filepath: Output path
        outer: Outer loop iterations
        inner: Inner loop iterations
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, 'w') as f:
        f.write("# Sample fetch trace: nested loop\n")
        f.write("# Format: ADDRESS WORD [REG=VALUE ...]\n")
        for record in nested_loop_trace(outer, inner):
            f.write(record.to_line() + '\n')
