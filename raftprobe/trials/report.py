"""
Operator facing output. Diagnostics go through logging, what the person
running the trials needs to see goes through a rich Console.
"""
from typing import Optional

from rich.console import Console

from raftprobe.api.failures import (FailureReason, WrongOrder, NoBlockFound, TerminatedUnexpectedly,
                                    LostTransactions, AddMemberFailure, RemoveMemberFailure,
                                    WrongValue, BlockDivergence, ConvergenceTimeout,
                                    RemoteCallFailure)

_console = None


def get_console() -> Console:
    global _console
    if _console is None:
        _console = Console(highlight=False, log_path=False)
    return _console


def set_console(console: Optional[Console]) -> None:
    """ Replace the shared console, None goes back to the default stdout one """
    global _console
    _console = console


def timestamped_message(message: str, console: Optional[Console] = None) -> None:
    if console is None:
        console = get_console()
    console.log(message)


def show_block(block) -> str:
    if block is None:
        return "Nothing"
    return str(block)


def failure_lines(reason: FailureReason) -> list[str]:
    if isinstance(reason, WrongValue):
        lines = ["Received at least one wrong value:"]
        for mismatch in reason.values:
            if mismatch.error is not None:
                actual = f'error "{mismatch.error}"'
            else:
                actual = str(mismatch.actual)
            lines.append(f"Node {mismatch.node_id}: received {actual}, expected {mismatch.expected}")
        return lines
    if isinstance(reason, NoBlockFound):
        return ["No block produced on any node"]
    if isinstance(reason, WrongOrder):
        return [f"Two blocks were found in the wrong order: {show_block(reason.before)}, "
                f"{show_block(reason.after)}"]
    if isinstance(reason, TerminatedUnexpectedly):
        return ["A node panicked"]
    if isinstance(reason, LostTransactions):
        return [f"some transactions were lost: {sorted(reason.txes)}"]
    if isinstance(reason, AddMemberFailure):
        return ["Failed to add a node"]
    if isinstance(reason, RemoveMemberFailure):
        return ["Failed to remove a node"]
    if isinstance(reason, BlockDivergence):
        shown = ", ".join(show_block(block) for block in reason.blocks)
        return [f"different last blocks on each node: [{shown}]"]
    if isinstance(reason, ConvergenceTimeout):
        return ["blocks failed to converge before timeout"]
    if isinstance(reason, RemoteCallFailure):
        return [f"rpc failure: {reason.message}"]
    raise Exception(f"no description for failure reason {reason!r}")


def print_failure_reason(reason: FailureReason, console: Optional[Console] = None) -> None:
    if console is None:
        console = get_console()
    for line in failure_lines(reason):
        console.print(line, style="bold red", markup=False)
