"""
Fetch Trace Format

Defines the text format used to replay instruction fetches into the
simulator.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, TextIO

from ..errors import ConfigurationError, TraceFormatError
from ..components.registers import register_number


@dataclass
class FetchRecord:
    """Single executed instruction fetch."""
    address: int                  # Fetch address
    word: Optional[int]           # Instruction word, None past the end of the program
    # Register values written since the previous fetch
    registers: Dict[int, int] = field(default_factory=dict)

    @property
    def past_end(self) -> bool:
        return self.word is None

    def to_line(self) -> str:
        word = '-' if self.word is None else f"0x{self.word:08x}"
        parts = [f"0x{self.address:08x}", word]
        parts.extend(f"${reg}={value}" for reg, value in sorted(self.registers.items()))
        return ' '.join(parts)


class TraceFormat(ABC):
    """Abstract base class for trace formats."""

    @abstractmethod
    def parse(self, file_handle) -> Iterator[FetchRecord]:
        """
        Parse trace file and yield fetch records.

        Args:
            file_handle: Open file handle

        Yields:
            FetchRecord for each fetch in trace
        """
        pass

    @abstractmethod
    def get_format_name(self) -> str:
        """Return format name."""
        pass


def parse_number(text: str) -> int:
    """Parse a hex (``0x`` prefix) or decimal number. Leading zeros are decimal."""
    digits = text.lstrip('+-')
    if digits[:2].lower() == '0x':
        return int(text, 16)
    return int(text, 10)


class FetchTextFormat(TraceFormat):
    """
    Text fetch trace format.

    Format: ADDRESS WORD [REG=VALUE ...]
    Example:
        0x00400000 0x20080003
        0x00400004 0x1d00fffb $t0=3
        0x00400008 -

    Numbers are hex with a ``0x`` prefix, otherwise decimal (``0400`` is
    four hundred). A WORD of ``-`` marks a fetch past the end of the
    program. Register assignments are applied before the fetch is delivered.
    """

    def get_format_name(self) -> str:
        return "FetchText"

    def parse(self, file_handle: TextIO) -> Iterator[FetchRecord]:
        """Parse fetch text format."""
        for line_num, line in enumerate(file_handle, 1):
            line = line.split('#', 1)[0].strip()
            if not line:
                continue

            parts = line.split()
            if len(parts) < 2:
                raise TraceFormatError(f"expected ADDRESS WORD, got {line!r}", line_num)

            try:
                address = parse_number(parts[0])
                word = None if parts[1] == '-' else parse_number(parts[1])
                registers = {}
                for assignment in parts[2:]:
                    name, sep, value = assignment.partition('=')
                    if not sep:
                        raise TraceFormatError(
                            f"expected REG=VALUE, got {assignment!r}", line_num)
                    registers[register_number(name)] = parse_number(value)
            except ConfigurationError as e:
                raise TraceFormatError(str(e), line_num) from e
            except ValueError as e:
                if isinstance(e, TraceFormatError):
                    raise
                raise TraceFormatError(f"bad number in {line!r}", line_num) from e

            if address < 0 or address > 0xFFFFFFFF:
                raise TraceFormatError(f"address out of 32-bit range: {parts[0]}", line_num)
            if word is not None and not 0 <= word <= 0xFFFFFFFF:
                raise TraceFormatError(f"word out of 32-bit range: {parts[1]}", line_num)

            yield FetchRecord(address=address, word=word, registers=registers)
