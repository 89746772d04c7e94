import asyncio
import hashlib
import logging
from typing import Optional

from raftprobe.api.cluster_api import ClusterAPI, ClusterEnv, NodeInstrumentation, ProvisionerAPI
from raftprobe.api.failures import RemoteCallError
from raftprobe.api.trial_config import SimSettings
from raftprobe.api.types import Block, ChangeOp, ConsensusKind, RoleName
from raftprobe.sim.network_sim import NetManager
from raftprobe.sim.sim_node import SimNode


def block_digest(parent: Optional[Block], number: int, txes) -> str:
    hasher = hashlib.sha256()
    hasher.update(parent.digest.encode() if parent else b"genesis")
    hasher.update(str(number).encode())
    for tx in txes:
        hasher.update(tx.tx_id.encode())
    return hasher.hexdigest()


class SimCluster(ClusterAPI):
    """
    An in-process stand-in for a cluster of node processes. A single
    consensus task plays the part of whichever node is leader: it holds an
    election among the members that can see a majority of the membership,
    drains their transaction pools into blocks, and pushes the resulting chain
    to every member it can reach. Nodes cut off by a partition stop advancing
    and catch up when the partition heals.
    """

    def __init__(self, env: ClusterEnv, num_nodes: int, settings: Optional[SimSettings] = None):
        if settings is None:
            settings = SimSettings()
        self.env = env
        self.settings = settings
        self.logger = logging.getLogger("SimCluster")
        self.nodes = [SimNode(node_id, self, env.keys[node_id], inbox_size=settings.inbox_size)
                      for node_id in range(1, num_nodes + 1)]
        self.members = {node.node_id for node in self.nodes}
        self.net_mgr = NetManager(self.members)
        self.chain = []
        self.leader_id = None
        self.elections = 0
        self.peers = set()
        self.announcements = asyncio.Queue()
        self.discovered = asyncio.Event()
        self.bootnode_task = None
        self.consensus_task = None

    def get_node(self, node_id) -> SimNode:
        for node in self.nodes:
            if node.node_id == node_id:
                return node
        raise Exception(f"no node with id {node_id}")

    def get_leader(self) -> Optional[SimNode]:
        if self.leader_id is None:
            return None
        return self.get_node(self.leader_id)

    async def start_bootnode(self):
        self.bootnode_task = asyncio.get_running_loop().create_task(self.bootnode())

    async def bootnode(self):
        while True:
            node_id = await self.announcements.get()
            await asyncio.sleep(self.settings.discovery_delay)
            self.peers.add(node_id)
            self.logger.debug("bootnode introduced node %s, %d peers known", node_id, len(self.peers))
            if self.peers >= self.members:
                self.discovered.set()

    async def start_nodes(self) -> list[NodeInstrumentation]:
        for node in self.nodes:
            await node.start()
            self.announcements.put_nowait(node.node_id)
        self.consensus_task = asyncio.get_running_loop().create_task(self.consensus_loop())
        return [node.instrumentation() for node in self.nodes]

    async def start_privacy_service(self):
        loop = asyncio.get_running_loop()
        for node in self.nodes:
            node.privacy_task = loop.create_task(self.privacy_sidecar(node))

    async def privacy_sidecar(self, node: SimNode):
        self.logger.debug("privacy service for node %s running", node.node_id)
        # lives exactly as long as the node process it serves
        await asyncio.shield(node.terminated)

    async def consensus_loop(self):
        await self.discovered.wait()
        self.logger.info("discovery complete, %d peers", len(self.peers))
        while True:
            self.tick()
            await asyncio.sleep(self.settings.block_period)

    def live_quorum(self) -> list[SimNode]:
        seg = self.net_mgr.majority_segment(self.members)
        if seg is None:
            return []
        quorum = [node for node in self.nodes
                  if node.node_id in self.members and node.node_id in seg and node.is_running()]
        if len(quorum) <= len(self.members) / 2:
            return []
        return quorum

    def tick(self):
        quorum = self.live_quorum()
        if not quorum:
            if self.leader_id is not None:
                self.logger.info("leader %s lost quorum", self.leader_id)
            self.leader_id = None
            return
        quorum_ids = [node.node_id for node in quorum]
        if self.leader_id not in quorum_ids:
            self.leader_id = min(quorum_ids)
            self.elections += 1
            self.logger.info("node %s elected leader, election %d", self.leader_id, self.elections)
        for node in quorum:
            node.note_role(RoleName.leader if node.node_id == self.leader_id else RoleName.follower)

        pending = []
        for node in quorum:
            pending.extend(node.take_txpool())
        if pending or self.env.consensus == ConsensusKind.clique:
            parent = self.chain[-1] if self.chain else None
            number = len(self.chain) + 1
            block = Block(number, block_digest(parent, number, pending), tuple(pending))
            self.chain.append(block)
            self.logger.debug("minted block %d with %d txes", number, len(pending))
        snapshot = tuple(self.chain)
        for node in quorum:
            if node.delivered_height < len(snapshot):
                node.deliver(snapshot)

    async def change_membership(self, initiator: SimNode, other: SimNode, op: ChangeOp):
        initiator.require_running()
        if initiator.node_id not in self.members:
            raise RemoteCallError(f"node {initiator.node_id} is not a cluster member")
        if self.leader_id is None or not self.net_mgr.can_reach(initiator.node_id, self.leader_id):
            raise RemoteCallError(f"node {initiator.node_id} cannot reach a leader")
        await asyncio.sleep(0)
        if op == ChangeOp.add:
            if other.node_id in self.members:
                raise RemoteCallError(f"node {other.node_id} is already a member")
            other.require_running()
            self.members.add(other.node_id)
        elif op == ChangeOp.remove:
            if other.node_id not in self.members:
                raise RemoteCallError(f"node {other.node_id} is not a member")
            self.members.discard(other.node_id)
            other.note_role(RoleName.outsider)
            if other.node_id == self.leader_id:
                self.leader_id = None
        else:
            raise RemoteCallError(f"unsupported membership change {op}")
        self.logger.info("membership change %s node %s done, members now %s",
                         op, other.node_id, sorted(self.members))

    def split_network(self, segments):
        self.net_mgr.split_network(segments)

    def unsplit(self):
        self.net_mgr.unsplit()

    async def partition(self, node: SimNode, millis: int):
        self.net_mgr.isolate(node.node_id)
        try:
            await asyncio.sleep(millis / 1000.0)
        finally:
            self.net_mgr.reconnect(node.node_id)

    async def teardown(self):
        tasks = []
        for task in [self.consensus_task, self.bootnode_task]:
            if task is not None:
                task.cancel()
                tasks.append(task)
        await asyncio.gather(*tasks, return_exceptions=True)
        for node in self.nodes:
            await node.stop()
        self.logger.info("cluster %s torn down", self.env.cluster_id)


class SimProvisioner(ProvisionerAPI):

    def __init__(self, settings: Optional[SimSettings] = None):
        self.settings = settings
        self.clusters = []

    async def provision(self, env: ClusterEnv, num_nodes: int) -> SimCluster:
        missing = set(range(1, num_nodes + 1)) - set(env.node_ids)
        if missing:
            raise Exception(f"no keys generated for nodes {sorted(missing)}")
        cluster = SimCluster(env, num_nodes, self.settings)
        self.clusters.append(cluster)
        return cluster
