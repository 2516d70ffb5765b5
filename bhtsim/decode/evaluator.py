"""
Outcome Evaluator

Computes whether a decoded branch is taken, and where it goes, from the
current values of its source registers.
"""

from typing import Callable, NamedTuple, Union

from .classifier import BranchKind, DecodedBranch, classify

RegisterReader = Callable[[int], int]


class Outcome(NamedTuple):
    """Ground truth of a branch."""
    taken: bool
    target: int


def to_signed32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def will_branch(kind: BranchKind, rs_value: int, rt_value: int = 0,
                strict_bgtz: bool = True) -> bool:
    """
    Evaluate a branch comparison.

    Args:
        kind: Comparison performed by the branch
        rs_value: Signed value of rs
        rt_value: Signed value of rt (only used by beq/bne)
        strict_bgtz: Evaluate bgtz as ``rs > 0``. When False, use
            ``rs >= 0`` like the MARS BHT tool does.
    """
    rs_value = to_signed32(rs_value)
    rt_value = to_signed32(rt_value)

    if kind is BranchKind.LESS_THAN_ZERO:
        return rs_value < 0
    if kind is BranchKind.GREATER_EQUAL_ZERO:
        return rs_value >= 0
    if kind is BranchKind.EQUAL:
        return rs_value == rt_value
    if kind is BranchKind.NOT_EQUAL:
        return rs_value != rt_value
    if kind is BranchKind.LESS_EQUAL_ZERO:
        return rs_value <= 0
    if kind is BranchKind.GREATER_THAN_ZERO:
        return rs_value > 0 if strict_bgtz else rs_value >= 0
    raise ValueError(f"Unknown branch kind: {kind!r}")


def evaluate(branch: Union[DecodedBranch, int], rs_value: int, rt_value: int,
             address: int = 0, strict_bgtz: bool = True) -> Outcome:
    """
    Compute the outcome and target address of a branch.

    Args:
        branch: Decoded branch, or a raw instruction word
        rs_value: Current value of the register named by bits [25:21]
        rt_value: Current value of the register named by bits [20:16]
        address: Address of the branch instruction
        strict_bgtz: See will_branch()

    Raises:
        ValueError: If a raw word is not a supported branch
    """
    if not isinstance(branch, DecodedBranch):
        decoded = classify(branch)
        if decoded is None:
            raise ValueError(f"Not a conditional branch: {branch:#010x}")
        branch = decoded

    taken = will_branch(branch.kind, rs_value, rt_value, strict_bgtz)
    return Outcome(taken=taken, target=branch.target(address))


def evaluate_with_registers(branch: DecodedBranch, read_register: RegisterReader,
                            address: int, strict_bgtz: bool = True) -> Outcome:
    """Evaluate a branch reading rs and rt exactly once each."""
    rs_value = read_register(branch.rs)
    rt_value = read_register(branch.rt)
    return evaluate(branch, rs_value, rt_value, address, strict_bgtz)
