"""
Error Types

Exceptions raised by the branch history table engine and its host.
"""


class BHTError(Exception):
    """Base class for all bhtsim errors."""


class ConfigurationError(BHTError, ValueError):
    """Invalid table size, history length or simulation setting."""


class RangeError(BHTError, IndexError):
    """Negative branch address or table index outside the table."""


class SequencingViolation(BHTError, AssertionError):
    """A second branch was marked pending while one is still unresolved."""


class TraceFormatError(BHTError, ValueError):
    """A fetch trace line could not be parsed."""

    def __init__(self, message: str, line_num: int = 0):
        self.line_num = line_num
        if line_num:
            message = f"line {line_num}: {message}"
        super().__init__(message)
