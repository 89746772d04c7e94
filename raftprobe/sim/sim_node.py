import asyncio
import itertools
import logging
import secrets
from dataclasses import dataclass

from raftprobe.api.cluster_api import NodeAPI, NodeInstrumentation, NodeKey
from raftprobe.api.failures import RemoteCallError
from raftprobe.api.types import Block, ChangeOp, OutstandingTxes, RoleName, TxId
from raftprobe.control.behavior import Behavior


@dataclass(frozen=True)
class SimTx:
    tx_id: TxId
    amount: int = 0
    private: bool = False


class SimNode(NodeAPI):
    """
    One simulated node "process". It runs as its own task, applying chains
    pushed to its inbox by the cluster's leader and publishing what it sees
    through its instrumentation. It accepts transactions into a local pool
    that the leader drains whenever the node can reach it.
    """

    def __init__(self, node_id: int, cluster, key: NodeKey, inbox_size: int = 16):
        self.node_id = node_id
        self.uri = f"sim://{node_id}"
        self.cluster = cluster
        self.key = key
        self.logger = logging.getLogger("SimNode")
        self.inbox = asyncio.Queue(maxsize=inbox_size)
        self.chain = []
        self.value = 0
        self.txpool = []
        self.outstanding = set()
        self.role = None
        self.delivered_height = 0
        self.privacy_task = None
        self.task = None
        self.tx_counter = itertools.count(1)
        self.last_block = Behavior()
        self.outstanding_txes = Behavior(OutstandingTxes())
        self.terminated = None
        self.assumed_role = None

    def __repr__(self):
        return f"SimNode({self.node_id}, role={self.role})"

    def instrumentation(self) -> NodeInstrumentation:
        return NodeInstrumentation(last_block=self.last_block,
                                   outstanding_txes=self.outstanding_txes,
                                   terminated=self.terminated,
                                   assumed_role=self.assumed_role)

    async def start(self):
        loop = asyncio.get_running_loop()
        self.terminated = loop.create_future()
        self.assumed_role = loop.create_future()
        self.task = loop.create_task(self.run())
        self.task.add_done_callback(self._note_exit)

    def _note_exit(self, task):
        if not self.terminated.done():
            self.terminated.set_result(self.node_id)
        self.logger.info("node %s process ended", self.node_id)

    def is_running(self) -> bool:
        return self.task is not None and not self.task.done()

    async def run(self):
        while True:
            chain = await self.inbox.get()
            self.apply_chain(chain)

    def apply_chain(self, chain):
        start = len(self.chain)
        if start > 0 and (len(chain) < start or chain[start - 1] != self.chain[-1]):
            # our history was replaced, replay from scratch
            self.logger.warning("node %s resetting chain at height %d", self.node_id, start)
            start = 0
            self.value = 0
        for block in chain[start:]:
            for tx in block.txes:
                self.outstanding.discard(tx.tx_id)
                self.value += tx.amount
        self.chain = list(chain)
        if self.chain:
            self.last_block.set(self.chain[-1])
        self.outstanding_txes.set(OutstandingTxes(frozenset(self.outstanding)))

    def deliver(self, chain):
        if self.inbox.full():
            # a newer chain contains everything the oldest queued one does
            self.inbox.get_nowait()
        self.inbox.put_nowait(chain)
        self.delivered_height = len(chain)

    def note_role(self, role: RoleName):
        if role != self.role:
            self.logger.debug("node %s now %s", self.node_id, role)
        self.role = role
        if role != RoleName.outsider and not self.assumed_role.done():
            self.assumed_role.set_result(role)

    def take_txpool(self) -> list[SimTx]:
        pool = self.txpool
        self.txpool = []
        return pool

    def kill(self):
        """ Simulate a crash of the node process """
        if self.task is not None:
            self.task.cancel()

    def require_running(self):
        if not self.is_running():
            raise RemoteCallError(f"node {self.node_id} is not running")

    async def _accept(self, amount: int, private: bool) -> TxId:
        self.require_running()
        if private and (self.privacy_task is None or self.privacy_task.done()):
            raise RemoteCallError(f"node {self.node_id} has no privacy service")
        tx = SimTx(f"0x{self.node_id:02x}{next(self.tx_counter):06x}{secrets.token_hex(4)}", amount, private)
        self.outstanding.add(tx.tx_id)
        self.txpool.append(tx)
        self.outstanding_txes.set(OutstandingTxes(frozenset(self.outstanding)))
        await asyncio.sleep(0)
        return tx.tx_id

    async def submit_tx(self, private: bool = False) -> TxId:
        return await self._accept(0, private)

    async def increment(self, amount: int) -> TxId:
        return await self._accept(amount, False)

    async def read_value(self) -> int:
        self.require_running()
        await asyncio.sleep(0)
        return self.value

    async def add_member(self, candidate: "SimNode") -> None:
        await self.cluster.change_membership(self, candidate, ChangeOp.add)

    async def remove_member(self, target: "SimNode") -> None:
        await self.cluster.change_membership(self, target, ChangeOp.remove)

    async def stop(self):
        for task in [self.task, self.privacy_task]:
            if task is not None and not task.done():
                task.cancel()
        tasks = [t for t in [self.task, self.privacy_task] if t is not None]
        await asyncio.gather(*tasks, return_exceptions=True)
