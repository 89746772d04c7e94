from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ConsensusKind(str, Enum):

    """ Leader based log replication, blocks are minted only when transactions are pending """
    raft = "RAFT"

    """ Proof of authority, blocks are minted every period, empty or not """
    clique = "CLIQUE"

    def __str__(self):
        return self.value


class PrivacyMode(str, Enum):

    """ Each node runs with a privacy sidecar service """
    enabled = "ENABLED"

    disabled = "DISABLED"

    def __str__(self):
        return self.value


class ChangeOp(str, Enum):

    add = "ADD"
    remove = "REMOVE"

    def __str__(self):
        return self.value


class RoleName(str, Enum):

    follower = "FOLLOWER"
    leader = "LEADER"
    # removed from the cluster or not yet added
    outsider = "OUTSIDER"

    def __str__(self):
        return self.value


class TerminationSignal(str, Enum):
    """
    Produced by the caller's predicate after each successful trial. The two
    "do" values halt the run, dont_terminate asks for another trial.
    """

    do_terminate_success = "DO_TERMINATE_SUCCESS"
    do_terminate_failure = "DO_TERMINATE_FAILURE"
    dont_terminate = "DONT_TERMINATE"

    def __str__(self):
        return self.value


# Transaction ids are opaque strings minted by the node that accepted the transaction
TxId = str


@dataclass(frozen=True)
class Block:
    number: int
    digest: str
    txes: tuple = field(default=(), compare=False, repr=False)

    def __str__(self):
        return f"Block({self.number}, {self.digest[:10]})"


@dataclass(frozen=True)
class OutstandingTxes:
    """
    Transactions a node has accepted but not yet seen committed. Combines by
    union, OutstandingTxes() is the identity.
    """
    txes: frozenset = field(default_factory=frozenset)

    def __or__(self, other):
        return OutstandingTxes(self.txes | other.txes)

    def __len__(self):
        return len(self.txes)


@dataclass(frozen=True)
class ValueMismatch:
    """ One node's answer to an application level read that did not match """
    node_id: int
    expected: int
    actual: Optional[int] = None
    error: Optional[str] = None
