# Components Package
from .entry import PredictorEntry
from .tables import PredictorTable, TableRow
from .registers import RegisterFile, register_number

__all__ = [
    'PredictorEntry',
    'PredictorTable',
    'TableRow',
    'RegisterFile',
    'register_number',
]
