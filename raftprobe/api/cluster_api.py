import abc
import asyncio
import hashlib
import secrets
import uuid
from dataclasses import dataclass, field

from raftprobe.api.types import ConsensusKind, PrivacyMode, TxId
from raftprobe.control.behavior import Behavior


@dataclass
class NodeInstrumentation:
    """
    Live view of one node, owned by whatever launched the node. The driver and
    the checks only read it.

    Args:
        last_block:
            Behavior holding the most recently committed Block, None until the
            node has seen one.
        outstanding_txes:
            Behavior holding an OutstandingTxes, transactions accepted by this
            node that it has not yet seen committed.
        terminated:
            Future resolved when the node process ends, for any reason.
        assumed_role:
            Future resolved with the node's RoleName once it has completed its
            first election.
    """
    last_block: Behavior
    outstanding_txes: Behavior
    terminated: asyncio.Future
    assumed_role: asyncio.Future


@dataclass
class NodeKey:
    node_id: int
    account: str
    private_key: str = field(repr=False)


@dataclass
class ClusterEnv:
    """
    Everything that identifies one trial's cluster. Built fresh for every
    trial, the consensus kind and privacy mode are fixed for a whole run.
    """
    consensus: ConsensusKind
    privacy: PrivacyMode
    password: str = field(repr=False)
    keys: dict[int, NodeKey] = field(default_factory=dict, repr=False)
    cluster_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def node_ids(self) -> list[int]:
        return sorted(self.keys)


def generate_cluster_keys(node_ids, password: str) -> dict[int, NodeKey]:
    keys = {}
    for node_id in node_ids:
        private_key = secrets.token_hex(32)
        digest = hashlib.sha256(f"{password}:{private_key}".encode()).hexdigest()
        keys[node_id] = NodeKey(node_id=node_id, account="0x" + digest[-40:], private_key=private_key)
    return keys


class NodeAPI(abc.ABC):
    """
    Handle to one node of the cluster under test. Every remote operation raises
    :py:class:`raftprobe.api.failures.RemoteCallError` when the node cannot
    complete it.
    """

    node_id: int
    uri: str

    @abc.abstractmethod
    async def add_member(self, candidate: "NodeAPI") -> None:
        """
        Ask the cluster, through this node, to add the candidate node as a member.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def remove_member(self, target: "NodeAPI") -> None:
        """
        Ask the cluster, through this node, to remove the target node from membership.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def submit_tx(self, private: bool = False) -> TxId:
        """
        Submit an empty synthetic transaction, returns its id once accepted.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def increment(self, amount: int) -> TxId:
        """
        Submit a transaction that adds amount to the application counter.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def read_value(self) -> int:
        """
        Read the application counter as of this node's last committed block.
        """
        raise NotImplementedError


class ClusterAPI(abc.ABC):
    """
    One provisioned cluster, scoped to a single trial. The driver calls the
    start methods in order, hands the nodes to the scenario body and calls
    teardown when the trial is over, however it ended.
    """

    env: ClusterEnv
    nodes: list[NodeAPI]

    @abc.abstractmethod
    async def start_bootnode(self) -> None:
        """ Launch the discovery process the nodes use to find each other """
        raise NotImplementedError

    @abc.abstractmethod
    async def start_nodes(self) -> list[NodeInstrumentation]:
        """ Launch every node process, returns their instrumentation in node order """
        raise NotImplementedError

    @abc.abstractmethod
    async def start_privacy_service(self) -> None:
        """ Launch the auxiliary privacy layer next to each node """
        raise NotImplementedError

    @abc.abstractmethod
    async def partition(self, node: NodeAPI, millis: int) -> None:
        """ Cut the node off from the rest of the cluster for millis, then heal """
        raise NotImplementedError

    @abc.abstractmethod
    async def teardown(self) -> None:
        raise NotImplementedError


class ProvisionerAPI(abc.ABC):

    @abc.abstractmethod
    async def provision(self, env: ClusterEnv, num_nodes: int) -> ClusterAPI:
        """
        Build, but do not start, a cluster of num_nodes for the given environment.
        Failures here are fatal to the whole run.
        """
        raise NotImplementedError
