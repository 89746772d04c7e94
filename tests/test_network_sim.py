#!/usr/bin/env python
import logging
import pytest

from raftprobe.sim.network_sim import NetManager
from log_control import setup_logging

log_control = setup_logging()
logger = logging.getLogger("test_code")


def test_split_and_heal():
    net = NetManager([1, 2, 3, 4, 5])
    assert net.can_reach(1, 5)
    assert net.majority_segment([1, 2, 3, 4, 5]) is net.full_cluster

    net.split_network([[1, 2], [3, 4]])
    # unlisted nodes stay with the first segment
    assert net.segment_of(5).name == "seg-0"
    assert net.can_reach(1, 5)
    assert not net.can_reach(1, 3)
    assert net.majority_segment([1, 2, 3, 4, 5]).name == "seg-0"
    assert net.majority_segment([1, 3, 4]).name == "seg-1"
    assert net.majority_segment([1, 3]) is None

    net.unsplit()
    assert net.segments is None
    assert net.can_reach(3, 1)

    with pytest.raises(Exception):
        net.split_network([[1, 9]])
    with pytest.raises(Exception):
        net.split_network([[1, 2], [2, 3]])


def test_isolate_and_reconnect():
    net = NetManager([1, 2, 3])
    net.isolate(3)
    assert not net.can_reach(3, 1)
    assert net.can_reach(1, 2)
    assert net.segment_of(3).name == "iso-3"
    net.isolate(3)
    assert len(net.segments) == 2

    net.isolate(2)
    assert net.majority_segment([1, 2, 3]) is None
    net.reconnect(3)
    assert net.can_reach(3, 1)
    assert net.segments is not None
    net.reconnect(2)
    assert net.segments is None

    # reconnecting something never isolated is harmless
    net.reconnect(1)
    assert net.segments is None


def test_added_node_joins_main():
    net = NetManager([1, 2])
    net.isolate(2)
    net.add_node(3)
    assert net.can_reach(1, 3)
    assert net.segment_of(4) is None
    assert not net.can_reach(4, 1)
