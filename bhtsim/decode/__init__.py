# Decode Package
from .classifier import BranchKind, DecodedBranch, classify, is_branch, sign_extend_16
from .evaluator import Outcome, evaluate, evaluate_with_registers, to_signed32, will_branch

__all__ = [
    'BranchKind',
    'DecodedBranch',
    'classify',
    'is_branch',
    'sign_extend_16',
    'Outcome',
    'evaluate',
    'evaluate_with_registers',
    'to_signed32',
    'will_branch',
]
