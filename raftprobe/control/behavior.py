"""
Observation primitives shared by the verification engine and the convergence
check.

A Behavior is a single slot cell written by a node's instrumentation and read
by any number of observers. Reads never block and always return the most
recently written value, or None if nothing has been written yet.
"""
import asyncio
import logging
from typing import Any, Awaitable, Iterable, Optional, Sequence


class Behavior:

    def __init__(self, initial=None):
        self._value = initial
        self.updates = 0

    def __repr__(self):
        return f"Behavior({self._value!r})"

    def set(self, value) -> None:
        self._value = value
        self.updates += 1

    def observe(self):
        return self._value


def observe_all(behaviors: Iterable[Behavior]) -> list:
    return [behavior.observe() for behavior in behaviors]


def first_difference(values: Sequence) -> Optional[tuple]:
    """
    Returns the first pair of unequal values found while scanning
    left to right, or None if they are all the same.
    """
    if len(values) == 0:
        return None
    first = values[0]
    for value in values[1:]:
        if value != first:
            return (first, value)
    return None


async def pause(seconds: float) -> None:
    await asyncio.sleep(seconds)


async def await_all(futures: Iterable[Awaitable]) -> list:
    """ Wait, with no time limit, until every future has resolved """
    return await asyncio.gather(*futures)


async def time_limit(seconds: float, aw: Awaitable) -> Optional[Any]:
    """
    Wait for the awaitable for at most the given number of seconds. Returns None
    when the deadline passes, in which case the awaited task has been cancelled.
    """
    try:
        return await asyncio.wait_for(aw, timeout=seconds)
    except asyncio.TimeoutError:
        return None


class Convergence:
    """
    Polls a collection of behaviors until they all hold the same, non None
    value. The most recent sample is kept so that a caller that gives up
    waiting can report what it saw.
    """

    def __init__(self, behaviors: Sequence[Behavior], interval: float):
        self.behaviors = list(behaviors)
        self.interval = interval
        self.last_sample = None
        self.polls = 0
        self.logger = logging.getLogger("Convergence")

    async def run(self):
        while True:
            sample = observe_all(self.behaviors)
            self.last_sample = sample
            self.polls += 1
            if first_difference(sample) is None and len(sample) > 0 and sample[0] is not None:
                self.logger.debug("converged on %s after %d polls", sample[0], self.polls)
                return sample[0]
            await asyncio.sleep(self.interval)

    def saw_values(self) -> bool:
        if self.last_sample is None:
            return False
        return any(value is not None for value in self.last_sample)


def convergence(interval: float, behaviors: Sequence[Behavior]) -> tuple[Convergence, asyncio.Task]:
    watcher = Convergence(behaviors, interval)
    task = asyncio.get_running_loop().create_task(watcher.run())
    return watcher, task
