#!/usr/bin/env python
import asyncio
import logging
import pytest

from raftprobe.api.failures import (VERIFIED, Falsified, TrialFailure, WrongOrder, NoBlockFound,
                                    TerminatedUnexpectedly, LostTransactions)
from raftprobe.api.types import OutstandingTxes
from raftprobe.control import behavior
from raftprobe.trials.verify import (verify_last_blocks, verify_outstanding_txes, check, verify,
                                     settle_and_verify)
from fakes import BLOCK_A, BLOCK_B, BLOCK_C, make_instruments, capture_console
from log_control import setup_logging

log_control = setup_logging()
logger = logging.getLogger("test_code")


def test_last_block_rules():
    assert verify_last_blocks([BLOCK_B, BLOCK_B, BLOCK_B]) == VERIFIED
    result = verify_last_blocks([BLOCK_B, BLOCK_C, BLOCK_B])
    assert isinstance(result, Falsified)
    assert isinstance(result.reason, WrongOrder)
    assert {result.reason.before, result.reason.after} == {BLOCK_B, BLOCK_C}
    assert verify_last_blocks([None, None, None]) == Falsified(NoBlockFound())
    assert verify_last_blocks([]) == Falsified(NoBlockFound())
    # a node with nothing yet disagrees with one that has a block
    result = verify_last_blocks([BLOCK_A, None])
    assert result.reason == WrongOrder(BLOCK_A, None)


def test_outstanding_rules():
    empty = OutstandingTxes()
    assert verify_outstanding_txes([empty, empty, empty]) == VERIFIED
    result = verify_outstanding_txes([empty, OutstandingTxes(frozenset({"t1"})), empty])
    assert result == Falsified(LostTransactions(frozenset({"t1"})))
    result = verify_outstanding_txes([OutstandingTxes(frozenset({"t1"})),
                                      OutstandingTxes(frozenset({"t1", "t2"}))])
    assert result.reason.txes == frozenset({"t1", "t2"})


async def test_check_samples_every_node():
    console, buffer = capture_console()
    instruments = [make_instruments(BLOCK_A) for i in range(3)]
    assert check(instruments, console) == VERIFIED
    assert "Outstanding" not in buffer.getvalue()

    instruments = [make_instruments(BLOCK_A), make_instruments(BLOCK_A, txes=["t1", "t2"]),
                   make_instruments(BLOCK_A)]
    result = check(instruments, console)
    assert result == Falsified(LostTransactions(frozenset({"t1", "t2"})))
    assert "Outstanding txes: 2" in buffer.getvalue()

    with pytest.raises(TrialFailure) as excinfo:
        verify(instruments, console)
    assert isinstance(excinfo.value.reason, LostTransactions)


async def test_termination_beats_everything():
    """
    A resolved termination handle is reported even when the blocks agree,
    and ahead of any other problem the same check finds.
    """
    console, buffer = capture_console()
    instruments = [make_instruments(BLOCK_A), make_instruments(BLOCK_A, terminated=True),
                   make_instruments(BLOCK_A)]
    assert check(instruments, console) == Falsified(TerminatedUnexpectedly())

    instruments = [make_instruments(BLOCK_A, txes=["t9"]), make_instruments(BLOCK_B, terminated=True)]
    assert check(instruments, console) == Falsified(TerminatedUnexpectedly())

    # block disagreement is reported before lost transactions
    instruments = [make_instruments(BLOCK_A, txes=["t9"]), make_instruments(BLOCK_B)]
    assert isinstance(check(instruments, console).reason, WrongOrder)


async def test_missing_outstanding_sample_counts_as_empty():
    console, buffer = capture_console()
    inst = make_instruments(BLOCK_A)
    inst.outstanding_txes.set(None)
    assert check([inst], console) == VERIFIED


@pytest.fixture
def pauses(monkeypatch):
    recorded = []

    async def fake_pause(seconds):
        recorded.append(seconds)
        await asyncio.sleep(0)
    monkeypatch.setattr(behavior, "pause", fake_pause)
    return recorded


async def test_transient_failure_gets_one_recheck(pauses):
    """
    NoBlockFound on the first check, a block shows up during the grace wait,
    the second check passes and exactly one extra wait was taken.
    """
    console, buffer = capture_console()
    instruments = [make_instruments(None) for i in range(3)]
    grace = 5.0

    async def fake_pause(seconds):
        pauses.append(seconds)
        if seconds == grace:
            for inst in instruments:
                inst.last_block.set(BLOCK_A)
    behavior.pause = fake_pause

    await settle_and_verify(instruments, 1.0, grace, console)
    assert pauses == [1.0, grace]


async def test_transient_failure_stays_failed(pauses):
    console, buffer = capture_console()
    instruments = [make_instruments(BLOCK_A), make_instruments(BLOCK_B)]
    with pytest.raises(TrialFailure) as excinfo:
        await settle_and_verify(instruments, 1.0, 5.0, console)
    assert isinstance(excinfo.value.reason, WrongOrder)
    assert pauses == [1.0, 5.0]


async def test_hard_failure_gets_no_recheck(pauses):
    console, buffer = capture_console()
    instruments = [make_instruments(BLOCK_A, txes=["t1"]), make_instruments(BLOCK_A)]
    with pytest.raises(TrialFailure) as excinfo:
        await settle_and_verify(instruments, 1.0, 5.0, console)
    assert excinfo.value.reason == LostTransactions(frozenset({"t1"}))
    assert pauses == [1.0]


async def test_clean_verify_gets_no_recheck(pauses):
    console, buffer = capture_console()
    instruments = [make_instruments(BLOCK_C) for i in range(4)]
    await settle_and_verify(instruments, 0.5, 5.0, console)
    assert pauses == [0.5]
