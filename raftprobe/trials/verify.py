import logging
from typing import Optional, Sequence

from rich.console import Console

from raftprobe.api.cluster_api import NodeInstrumentation
from raftprobe.api.failures import (Validity, Falsified, VERIFIED, TrialFailure, WrongOrder,
                                    NoBlockFound, TerminatedUnexpectedly, LostTransactions)
from raftprobe.api.types import OutstandingTxes
from raftprobe.control import behavior
from raftprobe.trials.report import get_console
from raftprobe.trials.validity import reduce_validity

logger = logging.getLogger("Verifier")

TRANSIENT_REASONS = (WrongOrder, NoBlockFound)


def verify_last_blocks(blocks: Sequence) -> Validity:
    diff = behavior.first_difference(blocks)
    if diff is not None:
        return Falsified(WrongOrder(*diff))
    if len(blocks) == 0 or blocks[0] is None:
        return Falsified(NoBlockFound())
    return VERIFIED


def verify_outstanding_txes(outstanding: Sequence[OutstandingTxes]) -> Validity:
    lost = OutstandingTxes()
    for txes in outstanding:
        lost = lost | txes
    if len(lost) == 0:
        return VERIFIED
    return Falsified(LostTransactions(lost.txes))


def verify_no_terminations(terminated) -> Validity:
    # a node exiting during a trial is always a defect
    return reduce_validity(Falsified(TerminatedUnexpectedly()) if future.done() else VERIFIED
                           for future in terminated)


def check(instruments: Sequence[NodeInstrumentation], console: Optional[Console] = None) -> Validity:
    """
    Verify nodes show normal behavior:

    * None have exited (this assumes termination is an error)
    * There are no lost transactions
    * The nodes all have the same last block

    Everything is sampled without waiting, so this sees a best effort snapshot
    of the cluster, not a linearized one.
    """
    if console is None:
        console = get_console()
    last_blocks = behavior.observe_all(inst.last_block for inst in instruments)
    outstanding = [txes if txes is not None else OutstandingTxes()
                   for txes in behavior.observe_all(inst.outstanding_txes for inst in instruments)]
    terminated = [inst.terminated for inst in instruments]

    for txes in outstanding:
        if len(txes) > 0:
            console.print(f"Outstanding txes: {len(txes)}", markup=False)

    validity = reduce_validity([verify_no_terminations(terminated),
                                verify_last_blocks(last_blocks),
                                verify_outstanding_txes(outstanding)])
    logger.debug("verification of %d nodes gave %s", len(instruments), validity)
    return validity


def verify(instruments: Sequence[NodeInstrumentation], console: Optional[Console] = None) -> None:
    validity = check(instruments, console)
    if isinstance(validity, Falsified):
        raise TrialFailure(validity.reason)


async def settle_and_verify(instruments: Sequence[NodeInstrumentation], settle: float, grace: float,
                            console: Optional[Console] = None) -> None:
    """
    Pause briefly, then verify. WrongOrder and NoBlockFound may just mean the
    cluster has not finished converging, so those two get one longer pause and
    a second check. Every other failure, and any failure on the second check,
    is final.
    """
    await behavior.pause(settle)
    validity = check(instruments, console)
    if isinstance(validity, Falsified) and isinstance(validity.reason, TRANSIENT_REASONS):
        logger.info("first check found %s, waiting %.1f seconds to check again",
                    validity.reason.code, grace)
        await behavior.pause(grace)
        validity = check(instruments, console)
    if isinstance(validity, Falsified):
        raise TrialFailure(validity.reason)
