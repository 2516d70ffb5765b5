"""
Register File

The 32 general purpose registers the trace-driven host keeps up to date
and the sequencer reads branch operands from.
"""

from typing import Dict, Union

import numpy as np

from ..errors import ConfigurationError

NUM_REGISTERS = 32

REGISTER_NAMES = (
    'zero', 'at', 'v0', 'v1', 'a0', 'a1', 'a2', 'a3',
    't0', 't1', 't2', 't3', 't4', 't5', 't6', 't7',
    's0', 's1', 's2', 's3', 's4', 's5', 's6', 's7',
    't8', 't9', 'k0', 'k1', 'gp', 'sp', 'fp', 'ra',
)

_NAME_TO_NUMBER: Dict[str, int] = {name: num for num, name in enumerate(REGISTER_NAMES)}
_NAME_TO_NUMBER['s8'] = 30


def register_number(name: Union[str, int]) -> int:
    """
    Resolve a register name to its number.

    Accepts ``$t0``, ``t0``, ``$8``, ``r8`` and ``8``.

    Raises:
        ConfigurationError: If the name is not a register
    """
    if isinstance(name, (int, np.integer)):
        number = int(name)
    else:
        key = name.strip().lower().lstrip('$')
        if key in _NAME_TO_NUMBER:
            return _NAME_TO_NUMBER[key]
        if key.startswith('r'):
            key = key[1:]
        if not key.isdigit():
            raise ConfigurationError(f"Unknown register: {name!r}")
        number = int(key)

    if not 0 <= number < NUM_REGISTERS:
        raise ConfigurationError(f"Register number out of range: {name!r}")
    return number


class RegisterFile:
    """
    General purpose register file.

    Values are stored as signed 32-bit integers; register 0 always reads 0.
    """

    def __init__(self):
        self._values = np.zeros(NUM_REGISTERS, dtype=np.int32)

    def read(self, number: int) -> int:
        return int(self._values[register_number(number)])

    def write(self, register: Union[str, int], value: int) -> None:
        number = register_number(register)
        if number == 0:
            return
        value &= 0xFFFFFFFF
        self._values[number] = value - 0x100000000 if value & 0x80000000 else value

    def update(self, values: Dict[Union[str, int], int]) -> None:
        for register, value in values.items():
            self.write(register, value)

    def reset(self) -> None:
        self._values.fill(0)

    def __call__(self, number: int) -> int:
        return self.read(number)

    def __str__(self) -> str:
        lines = []
        for base in range(0, NUM_REGISTERS, 8):
            values = '\t'.join(str(int(v)) for v in self._values[base:base + 8])
            lines.append(f"R{base:02d}:\t{values}")
        return '\n'.join(lines) + '\n'
