import logging
from typing import Sequence

from raftprobe.api.cluster_api import NodeAPI
from raftprobe.api.failures import TrialFailure, RemoteCallError, RemoteCallFailure, WrongValue
from raftprobe.api.types import TxId, ValueMismatch

logger = logging.getLogger("Verifier")


async def increment(node: NodeAPI, amount: int) -> TxId:
    try:
        return await node.increment(amount)
    except RemoteCallError as e:
        raise TrialFailure(RemoteCallFailure(str(e)))


async def verify_values(nodes: Sequence[NodeAPI], expected: int) -> None:
    """
    Read the application counter from every node, a read that errors or
    returns anything but expected is reported, all of them together.
    """
    mismatches = []
    for node in nodes:
        try:
            actual = await node.read_value()
        except RemoteCallError as e:
            mismatches.append(ValueMismatch(node.node_id, expected, error=str(e)))
            continue
        if actual != expected:
            mismatches.append(ValueMismatch(node.node_id, expected, actual=actual))
    if mismatches:
        logger.info("%d of %d nodes returned wrong values", len(mismatches), len(nodes))
        raise TrialFailure(WrongValue(tuple(mismatches)))
