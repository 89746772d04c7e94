#!/usr/bin/env python
import itertools
import logging
import pytest

from raftprobe.api.failures import (VERIFIED, Falsified, Verified, ALL_REASONS, FailureReason,
                                    WrongOrder, NoBlockFound, TerminatedUnexpectedly,
                                    LostTransactions, AddMemberFailure, RemoveMemberFailure,
                                    WrongValue, BlockDivergence, ConvergenceTimeout,
                                    RemoteCallFailure, TrialFailure)
from raftprobe.api.types import TerminationSignal, ValueMismatch
from raftprobe.trials.validity import (combine, reduce_validity, combine_termination,
                                       reduce_termination)
from raftprobe.trials.report import failure_lines, print_failure_reason
from fakes import BLOCK_A, BLOCK_B, capture_console
from log_control import setup_logging

log_control = setup_logging()
logger = logging.getLogger("test_code")

SAMPLES = [VERIFIED,
           Falsified(NoBlockFound()),
           Falsified(LostTransactions(frozenset({"t1"}))),
           Falsified(TerminatedUnexpectedly()),
           VERIFIED]


def test_combine_laws():
    """
    VERIFIED is the identity, a falsified left side always wins, and combine
    is associative over every triple of sample verdicts.
    """
    for v in SAMPLES:
        assert combine(VERIFIED, v) == v
        assert combine(v, VERIFIED) == v
    assert combine(VERIFIED, VERIFIED) == VERIFIED
    left = Falsified(WrongOrder(BLOCK_A, BLOCK_B))
    right = Falsified(NoBlockFound())
    assert combine(left, right) is left
    assert combine(right, left) is right
    for a, b, c in itertools.product(SAMPLES, repeat=3):
        assert combine(combine(a, b), c) == combine(a, combine(b, c))


def test_reduce_reports_first_failure():
    assert reduce_validity([]) == VERIFIED
    assert reduce_validity([VERIFIED, VERIFIED]) == VERIFIED
    result = reduce_validity(SAMPLES)
    assert isinstance(result, Falsified)
    assert result.reason == NoBlockFound()
    # order matters, not how many checks ran
    result = reduce_validity(list(reversed(SAMPLES)))
    assert result.reason == TerminatedUnexpectedly()
    result = reduce_validity(iter([VERIFIED, Falsified(ConvergenceTimeout())] + [VERIFIED] * 10))
    assert result.reason == ConvergenceTimeout()
    assert VERIFIED.is_verified()
    assert not result.is_verified()
    assert isinstance(VERIFIED, Verified)


def test_termination_combination():
    success = TerminationSignal.do_terminate_success
    failure = TerminationSignal.do_terminate_failure
    dont = TerminationSignal.dont_terminate
    assert combine_termination(success, failure) == success
    assert combine_termination(failure, success) == failure
    assert combine_termination(dont, success) == success
    assert combine_termination(dont, failure) == failure
    assert combine_termination(success, dont) == success
    assert combine_termination(dont, dont) == dont
    assert reduce_termination([]) == dont
    assert reduce_termination([dont, dont, failure, success]) == failure
    assert str(success) == "DO_TERMINATE_SUCCESS"


def test_failure_descriptions():
    """
    Every reason in the taxonomy has its own description, and something
    outside the taxonomy is refused rather than printed generically.
    """
    examples = {
        WrongOrder: WrongOrder(BLOCK_A, None),
        NoBlockFound: NoBlockFound(),
        TerminatedUnexpectedly: TerminatedUnexpectedly(),
        LostTransactions: LostTransactions(frozenset({"t2", "t1"})),
        AddMemberFailure: AddMemberFailure(),
        RemoveMemberFailure: RemoveMemberFailure(),
        WrongValue: WrongValue((ValueMismatch(1, 5, actual=4), ValueMismatch(2, 5, error="boom"))),
        BlockDivergence: BlockDivergence((BLOCK_A, BLOCK_B, None)),
        ConvergenceTimeout: ConvergenceTimeout(),
        RemoteCallFailure: RemoteCallFailure("connection refused"),
    }
    assert set(examples) == set(ALL_REASONS)
    seen = set()
    for reason_class, reason in examples.items():
        lines = failure_lines(reason)
        assert len(lines) > 0
        seen.add(lines[0])
    assert len(seen) == len(ALL_REASONS)

    assert failure_lines(NoBlockFound()) == ["No block produced on any node"]
    assert "['t1', 't2']" in failure_lines(examples[LostTransactions])[0]
    assert "Nothing" in failure_lines(examples[WrongOrder])[0]
    wrong = failure_lines(examples[WrongValue])
    assert wrong[1] == "Node 1: received 4, expected 5"
    assert wrong[2] == 'Node 2: received error "boom", expected 5'
    assert "connection refused" in failure_lines(examples[RemoteCallFailure])[0]

    class Mystery(FailureReason):
        pass

    with pytest.raises(Exception):
        failure_lines(Mystery())


def test_print_failure_reason():
    console, buffer = capture_console()
    print_failure_reason(BlockDivergence((BLOCK_A, None)), console)
    output = buffer.getvalue()
    assert "different last blocks on each node" in output
    assert "Nothing" in output


def test_trial_failure_carries_reason():
    reason = RemoteCallFailure("timeout")
    with pytest.raises(TrialFailure) as excinfo:
        raise TrialFailure(reason)
    assert excinfo.value.reason is reason
    assert reason.code == "REMOTE_CALL_FAILURE"
