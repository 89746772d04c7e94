import logging
from typing import Optional

from rich.console import Console

from raftprobe.api.cluster_api import NodeAPI
from raftprobe.api.failures import TrialFailure, RemoteCallError, AddMemberFailure, RemoveMemberFailure
from raftprobe.control import behavior
from raftprobe.trials.report import timestamped_message

logger = logging.getLogger("Membership")


async def adds_node(existing_member: NodeAPI, newcomer: NodeAPI, settle: float = 2.0,
                    console: Optional[Console] = None) -> None:
    message = f"adding node {newcomer.node_id}"
    timestamped_message(f"waiting before {message}", console)
    # give any in-flight election or append a chance to finish
    await behavior.pause(settle)
    timestamped_message(message, console)
    try:
        await existing_member.add_member(newcomer)
    except RemoteCallError as e:
        logger.debug("node %s failed to add %s: %s", existing_member.node_id, newcomer.node_id, e)
        raise TrialFailure(AddMemberFailure())


async def removes_node(existing_member: NodeAPI, target: NodeAPI, settle: float = 2.0,
                       console: Optional[Console] = None) -> None:
    message = f"removing node {target.node_id}"
    timestamped_message(f"waiting before {message}", console)
    await behavior.pause(settle)
    timestamped_message(message, console)
    try:
        await existing_member.remove_member(target)
    except RemoteCallError as e:
        logger.debug("node %s failed to remove %s: %s", existing_member.node_id, target.node_id, e)
        raise TrialFailure(RemoveMemberFailure())
