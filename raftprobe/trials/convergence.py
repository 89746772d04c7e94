import logging
from typing import Sequence

from raftprobe.api.cluster_api import NodeInstrumentation
from raftprobe.api.failures import TrialFailure, BlockDivergence, ConvergenceTimeout
from raftprobe.api.types import Block
from raftprobe.control.behavior import convergence, time_limit

logger = logging.getLogger("Convergence")


# NOTE: the default deadline assumes raft-like latency, clique block periods
# are much longer and callers should pass a larger deadline.
async def await_block_convergence(instruments: Sequence[NodeInstrumentation],
                                  interval: float = 1.0, deadline: float = 10.0) -> Block:
    """
    Wait for every node to report the same, non empty, last block. Unlike the
    post scenario verification this tolerates disagreement until the deadline.
    Raises TrialFailure with BlockDivergence if the nodes reported blocks but
    never agreed, or ConvergenceTimeout if nothing was observed at all.
    """
    watcher, task = convergence(interval, [inst.last_block for inst in instruments])
    try:
        block = await time_limit(deadline, task)
    finally:
        # already done unless something other than the deadline interrupted us
        task.cancel()
    if block is not None:
        logger.debug("blocks converged on %s", block)
        return block
    if watcher.saw_values():
        logger.info("blocks did not converge in %.1f seconds: %s", deadline, watcher.last_sample)
        raise TrialFailure(BlockDivergence(tuple(watcher.last_sample)))
    logger.info("no blocks observed in %.1f seconds", deadline)
    raise TrialFailure(ConvergenceTimeout())
