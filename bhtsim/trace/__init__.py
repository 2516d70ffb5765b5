# Trace Package
from .parser import TraceParser, FetchTrace, create_sample_trace, nested_loop_trace
from .formats import TraceFormat, FetchTextFormat, FetchRecord

__all__ = [
    'TraceParser',
    'FetchTrace',
    'create_sample_trace',
    'nested_loop_trace',
    'TraceFormat',
    'FetchTextFormat',
    'FetchRecord',
]
