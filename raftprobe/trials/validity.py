from functools import reduce
from typing import Iterable

from raftprobe.api.failures import Validity, Falsified, VERIFIED
from raftprobe.api.types import TerminationSignal


def combine(left: Validity, right: Validity) -> Validity:
    """
    Merge two verdicts. A falsified left side wins, so reducing a sequence
    left to right reports the earliest failure and drops the later ones.
    VERIFIED is the identity.
    """
    if isinstance(left, Falsified):
        return left
    return right


def reduce_validity(checks: Iterable[Validity]) -> Validity:
    return reduce(combine, checks, VERIFIED)


def combine_termination(left: TerminationSignal, right: TerminationSignal) -> TerminationSignal:
    """
    Either "do" value absorbs whatever comes after it, dont_terminate defers
    to the right side.
    """
    if left == TerminationSignal.dont_terminate:
        return right
    return left


def reduce_termination(signals: Iterable[TerminationSignal]) -> TerminationSignal:
    return reduce(combine_termination, signals, TerminationSignal.dont_terminate)
