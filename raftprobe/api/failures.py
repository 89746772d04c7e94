"""
The closed set of defects a trial can detect, and the two state verdict
built from them.

Each detectable defect class has exactly one FailureReason subclass, tagged
with a FailureCode. Code that produces or prints a verdict dispatches over
every subclass listed in ALL_REASONS, so adding a new defect class means
adding it there and to every consumer.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from raftprobe.api.types import Block, ValueMismatch


class FailureCode(str, Enum):
    wrong_order = "WRONG_ORDER"
    no_block_found = "NO_BLOCK_FOUND"
    terminated_unexpectedly = "TERMINATED_UNEXPECTEDLY"
    lost_transactions = "LOST_TRANSACTIONS"
    add_member_failure = "ADD_MEMBER_FAILURE"
    remove_member_failure = "REMOVE_MEMBER_FAILURE"
    wrong_value = "WRONG_VALUE"
    block_divergence = "BLOCK_DIVERGENCE"
    convergence_timeout = "CONVERGENCE_TIMEOUT"
    remote_call_failure = "REMOTE_CALL_FAILURE"

    def __str__(self):
        return self.value


class FailureReason:

    code = None


@dataclass(frozen=True)
class WrongOrder(FailureReason):
    """ Two sampled last block observations disagree """
    code = FailureCode.wrong_order
    before: Optional[Block]
    after: Optional[Block]


@dataclass(frozen=True)
class NoBlockFound(FailureReason):
    """ All nodes agree, but nothing has been minted """
    code = FailureCode.no_block_found


@dataclass(frozen=True)
class TerminatedUnexpectedly(FailureReason):
    code = FailureCode.terminated_unexpectedly


@dataclass(frozen=True)
class LostTransactions(FailureReason):
    code = FailureCode.lost_transactions
    txes: frozenset = field(default_factory=frozenset)


@dataclass(frozen=True)
class AddMemberFailure(FailureReason):
    code = FailureCode.add_member_failure


@dataclass(frozen=True)
class RemoveMemberFailure(FailureReason):
    code = FailureCode.remove_member_failure


@dataclass(frozen=True)
class WrongValue(FailureReason):
    code = FailureCode.wrong_value
    values: tuple[ValueMismatch, ...] = ()


@dataclass(frozen=True)
class BlockDivergence(FailureReason):
    """ Last observed block of each node, in node order, at the deadline """
    code = FailureCode.block_divergence
    blocks: tuple = ()


@dataclass(frozen=True)
class ConvergenceTimeout(FailureReason):
    code = FailureCode.convergence_timeout


@dataclass(frozen=True)
class RemoteCallFailure(FailureReason):
    code = FailureCode.remote_call_failure
    message: str = ""


ALL_REASONS = (WrongOrder, NoBlockFound, TerminatedUnexpectedly, LostTransactions,
               AddMemberFailure, RemoveMemberFailure, WrongValue, BlockDivergence,
               ConvergenceTimeout, RemoteCallFailure)


class Validity:

    def is_verified(self) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class Verified(Validity):

    def is_verified(self) -> bool:
        return True


@dataclass(frozen=True)
class Falsified(Validity):
    reason: FailureReason

    def is_verified(self) -> bool:
        return False


VERIFIED = Verified()


class TrialFailure(Exception):
    """
    Raised anywhere inside a trial to abort the rest of it. The driver catches
    it and turns it into Falsified(reason).
    """

    def __init__(self, reason: FailureReason):
        super().__init__(str(reason))
        self.reason = reason


class RemoteCallError(Exception):
    """ A call to a node failed, raised by NodeAPI implementations """
