"""
Branch Classifier

Decides whether a 32-bit MIPS instruction word is a conditional branch
the table tracks, and if so which comparison it performs.

    I type: |--6 opcode--|-5 rs-|-5 rt-|--16 offset--|
"""

from dataclasses import dataclass
from enum import Enum, unique
from typing import Optional

OPCODE_REGIMM = 0x01

# REGIMM sub-functions taken from the low 6 bits of the word
REGIMM_FUNCTS = frozenset(range(0x00, 0x08)) | frozenset(range(0x10, 0x14))


@unique
class BranchKind(Enum):
    """Comparison a conditional branch performs."""
    LESS_THAN_ZERO = 'rs < 0'
    GREATER_EQUAL_ZERO = 'rs >= 0'
    EQUAL = 'rs == rt'
    NOT_EQUAL = 'rs != rt'
    LESS_EQUAL_ZERO = 'rs <= 0'
    GREATER_THAN_ZERO = 'rs > 0'

    @property
    def compares_rt(self) -> bool:
        return self in (BranchKind.EQUAL, BranchKind.NOT_EQUAL)


# opcode -> (kind, mnemonic, likely)
_OPCODE_BRANCHES = {
    0x04: (BranchKind.EQUAL, 'beq', False),
    0x05: (BranchKind.NOT_EQUAL, 'bne', False),
    0x06: (BranchKind.LESS_EQUAL_ZERO, 'blez', False),
    0x07: (BranchKind.GREATER_THAN_ZERO, 'bgtz', False),
    0x14: (BranchKind.EQUAL, 'beql', True),
    0x15: (BranchKind.NOT_EQUAL, 'bnel', True),
    0x16: (BranchKind.LESS_EQUAL_ZERO, 'blezl', True),
    0x17: (BranchKind.GREATER_THAN_ZERO, 'bgtzl', True),
}

_REGIMM_MNEMONICS = {
    0x00: 'bltz', 0x01: 'bgez', 0x02: 'bltzl', 0x03: 'bgezl',
    0x10: 'bltzal', 0x11: 'bgezal', 0x12: 'bltzall', 0x13: 'bgezall',
}


@dataclass(frozen=True)
class DecodedBranch:
    """A conditional branch instruction, decoded."""
    word: int
    kind: BranchKind
    mnemonic: str
    opcode: int
    funct: int
    rs: int
    rt: int
    offset: int          # Signed 16-bit word offset
    likely: bool = False
    link: bool = False

    @property
    def byte_offset(self) -> int:
        """Offset in bytes relative to the instruction after the branch."""
        return self.offset << 2

    def target(self, address: int) -> int:
        """Absolute target address of this branch located at address."""
        return address + self.byte_offset + 4

    def assembly(self) -> str:
        """Basic assembly text, e.g. ``beq $4, $5, 12``."""
        if self.kind.compares_rt:
            return f"{self.mnemonic} ${self.rs}, ${self.rt}, {self.offset}"
        return f"{self.mnemonic} ${self.rs}, {self.offset}"


def sign_extend_16(value: int) -> int:
    value &= 0xFFFF
    return value - 0x10000 if value & 0x8000 else value


def classify(word: int) -> Optional[DecodedBranch]:
    """
    Classify an instruction word.

    Args:
        word: 32-bit instruction word

    Returns:
        DecodedBranch if the word is a supported conditional branch,
        otherwise None
    """
    word &= 0xFFFFFFFF
    opcode = word >> 26
    funct = word & 0x3F
    rs = (word >> 21) & 0x1F
    rt = (word >> 16) & 0x1F
    offset = sign_extend_16(word)

    if opcode == OPCODE_REGIMM:
        if funct not in REGIMM_FUNCTS:
            return None
        # Even sub-functions compare rs < 0, odd ones rs >= 0
        kind = BranchKind.GREATER_EQUAL_ZERO if funct & 0x1 else BranchKind.LESS_THAN_ZERO
        mnemonic = _REGIMM_MNEMONICS.get(funct, f"regimm.{funct:#04x}")
        return DecodedBranch(word=word, kind=kind, mnemonic=mnemonic,
                             opcode=opcode, funct=funct, rs=rs, rt=rt,
                             offset=offset,
                             likely=bool(funct & 0x2),
                             link=bool(funct & 0x10))

    if opcode in _OPCODE_BRANCHES:
        kind, mnemonic, likely = _OPCODE_BRANCHES[opcode]
        return DecodedBranch(word=word, kind=kind, mnemonic=mnemonic,
                             opcode=opcode, funct=funct, rs=rs, rt=rt,
                             offset=offset, likely=likely)

    return None


def is_branch(word: int) -> bool:
    return classify(word) is not None
