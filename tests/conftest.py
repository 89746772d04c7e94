"""
pytest configuration for the raftprobe tests.

This file is automatically loaded by pytest and provides
shared fixtures and configuration for all tests.
"""
import asyncio
import os
import pytest

from raftprobe.api.cluster_api import ClusterEnv, generate_cluster_keys
from raftprobe.api.trial_config import TrialConfig, SimSettings
from raftprobe.api.types import ConsensusKind, PrivacyMode
from raftprobe.sim.sim_cluster import SimCluster
from raftprobe.trials import report

# Set ipdb as the default breakpoint() debugger
os.environ['PYTHONBREAKPOINT'] = 'ipdb.set_trace'


@pytest.fixture(scope="session", autouse=True)
def configure_breakpoint():
    """
    Automatically configure ipdb as the breakpoint debugger for all tests.
    """
    os.environ['PYTHONBREAKPOINT'] = 'ipdb.set_trace'
    yield


@pytest.fixture(autouse=True)
def reset_console():
    # tests that capture operator output swap the shared console
    yield
    report.set_console(None)


@pytest.fixture
def fast_config():
    return TrialConfig(settle_before_verify=0.05,
                       retry_grace=0.2,
                       member_change_settle=0.01,
                       convergence_interval=0.02,
                       convergence_deadline=2.0,
                       spam_rate=50.0)


@pytest.fixture
async def sim_maker():
    clusters = []

    async def make_cluster(num_nodes, consensus=ConsensusKind.raft, privacy=PrivacyMode.disabled,
                           settings=None, start=True):
        if settings is None:
            settings = SimSettings(block_period=0.01, discovery_delay=0.001)
        keys = generate_cluster_keys(range(1, num_nodes + 1), "abcd")
        env = ClusterEnv(consensus=consensus, privacy=privacy, password="abcd", keys=keys)
        cluster = SimCluster(env, num_nodes, settings)
        clusters.append(cluster)
        if start:
            await cluster.start_bootnode()
            instruments = await cluster.start_nodes()
            if privacy == PrivacyMode.enabled:
                await cluster.start_privacy_service()
            await asyncio.gather(*[inst.assumed_role for inst in instruments])
        return cluster

    yield make_cluster
    for cluster in clusters:
        await cluster.teardown()
