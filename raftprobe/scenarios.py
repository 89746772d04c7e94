"""
Ready made disruption scenarios. Each one is an async callable taking the
TrialEnv the driver builds for every trial, and raises TrialFailure (usually
through the TrialEnv helpers) when it detects a problem on its own.
"""
import logging

from raftprobe.control import behavior
from raftprobe.trials.driver import TrialEnv

logger = logging.getLogger("TrialDriver")

PARTITION_MILLIS = 1000


async def idle(env: TrialEnv):
    """ Do nothing, useful to check that a cluster with no load fails with NoBlockFound """
    logger.debug("trial %d idle scenario", env.index)


async def spam(env: TrialEnv):
    """ Load every node for a few convergence intervals """
    async def body():
        await env.await_block_convergence()

    await env.with_load(env.nodes, body)


async def partition(env: TrialEnv):
    """
    Cut the last node off from the others while every node is under load, then
    heal and require the cluster to converge again.
    """
    target = env.nodes[-1]

    async def body():
        env.message(f"partitioning node {target.node_id} for {PARTITION_MILLIS} ms")
        await env.partition(target, PARTITION_MILLIS)
        env.message(f"node {target.node_id} reconnected")
        await env.await_block_convergence()

    await env.with_load(env.nodes, body)


async def churn(env: TrialEnv):
    """
    Under load, remove the last node from the cluster through the first one,
    let the rest make progress, then add it back and wait for convergence.
    """
    if len(env.nodes) < 3:
        raise Exception("churn needs at least three nodes to keep a quorum")
    initiator = env.nodes[0]
    target = env.nodes[-1]
    remaining = env.instruments[:-1]

    async def body():
        await env.removes_node(initiator, target)
        await env.await_block_convergence(remaining)
        await env.adds_node(initiator, target)
        await env.await_block_convergence()

    await env.with_load(env.nodes, body)


async def values(env: TrialEnv):
    """
    Increment the application counter through every node in turn, wait for
    the blocks to converge, and check every node reads the same total.
    """
    expected = 0
    for amount, node in enumerate(env.nodes, start=1):
        await env.increment(node, amount)
        expected += amount
    await env.await_block_convergence()
    # convergence may land between two of the increment blocks
    await behavior.pause(env.config.settle_before_verify)
    await env.await_block_convergence()
    await env.verify_values(expected)


SCENARIOS = dict(idle=idle, spam=spam, partition=partition, churn=churn, values=values)
