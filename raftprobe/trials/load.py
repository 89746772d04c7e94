import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from raftprobe.api.cluster_api import NodeAPI
from raftprobe.api.failures import RemoteCallError

logger = logging.getLogger("LoadGen")

T = TypeVar("T")


def check_rate(rate: float) -> None:
    if isinstance(rate, bool) or not isinstance(rate, (int, float)) or rate <= 0:
        raise Exception(f"spam rate must be a positive number of transactions per second, not {rate!r}")


async def spam_nodes(nodes: Sequence[NodeAPI], rate: float) -> None:
    """
    Submit one empty transaction to every node, rate times a second, until
    cancelled. Failed submissions are logged and skipped, a node that is
    partitioned or restarting is expected to refuse some. Any other error
    ends the spammer, and with_load reports it.
    """
    check_rate(rate)
    period = 1.0 / rate
    submitted = 0
    try:
        while True:
            for node in nodes:
                try:
                    await node.submit_tx()
                    submitted += 1
                except RemoteCallError as e:
                    logger.debug("spam to node %s refused: %s", node.node_id, e)
            await asyncio.sleep(period)
    finally:
        logger.debug("spammer stopping after %d transactions", submitted)


def spammer_error(spammer: asyncio.Task) -> Optional[BaseException]:
    if spammer.done() and not spammer.cancelled():
        return spammer.exception()
    return None


async def with_load(nodes: Sequence[NodeAPI], body: Callable[[], Awaitable[T]], rate: float = 10.0) -> T:
    """
    Run body while a background task spams the nodes with transactions. The
    spammer is cancelled on every way out of here, including body raising.
    Cancellation is not waited for.

    If the spammer died on its own the body ran without load, so once the
    body returns the spammer's error is raised in place of its result. An
    error from the body itself takes precedence.
    """
    check_rate(rate)
    spammer = asyncio.get_running_loop().create_task(spam_nodes(list(nodes), rate))
    logger.debug("started spammer on %d nodes at %.1f/s", len(nodes), rate)
    try:
        result = await body()
    finally:
        spammer.cancel()
        error = spammer_error(spammer)
        if error is not None:
            logger.error("spammer died before the scenario finished: %r", error)
    if error is not None:
        raise error
    return result
