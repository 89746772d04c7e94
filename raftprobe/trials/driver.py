import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

from rich.console import Console

from raftprobe.api.cluster_api import (ClusterAPI, ClusterEnv, NodeAPI, NodeInstrumentation,
                                       ProvisionerAPI, generate_cluster_keys)
from raftprobe.api.failures import Validity, Falsified, VERIFIED, TrialFailure
from raftprobe.api.trial_config import TrialConfig
from raftprobe.api.types import ConsensusKind, PrivacyMode, TerminationSignal, Block, TxId
from raftprobe.control.behavior import await_all
from raftprobe.trials import membership, values
from raftprobe.trials.convergence import await_block_convergence
from raftprobe.trials.load import with_load
from raftprobe.trials.report import get_console, print_failure_reason, timestamped_message
from raftprobe.trials.verify import settle_and_verify

FAILED_TEST_CODE = 1

Predicate = Callable[[int], TerminationSignal]


@dataclass
class Member:
    node: NodeAPI
    instruments: NodeInstrumentation


class TrialEnv:
    """
    What a scenario body gets to work with: the started cluster, its members in
    node order, the trial's timing config and the console for progress
    messages. The helper methods raise TrialFailure, which ends the trial at
    that point.
    """

    def __init__(self, index: int, cluster: ClusterAPI, members: list[Member], config: TrialConfig,
                 console: Optional[Console] = None):
        if console is None:
            console = get_console()
        self.index = index
        self.cluster = cluster
        self.members = members
        self.config = config
        self.console = console

    @property
    def nodes(self) -> list[NodeAPI]:
        return [member.node for member in self.members]

    @property
    def instruments(self) -> list[NodeInstrumentation]:
        return [member.instruments for member in self.members]

    async def adds_node(self, existing_member: NodeAPI, newcomer: NodeAPI) -> None:
        await membership.adds_node(existing_member, newcomer, settle=self.config.member_change_settle,
                                   console=self.console)

    async def removes_node(self, existing_member: NodeAPI, target: NodeAPI) -> None:
        await membership.removes_node(existing_member, target, settle=self.config.member_change_settle,
                                      console=self.console)

    async def with_load(self, nodes: Sequence[NodeAPI], body: Callable[[], Awaitable]):
        return await with_load(nodes, body, rate=self.config.spam_rate)

    async def await_block_convergence(self, instruments: Optional[Sequence[NodeInstrumentation]] = None) -> Block:
        if instruments is None:
            instruments = self.instruments
        return await await_block_convergence(instruments,
                                             interval=self.config.convergence_interval,
                                             deadline=self.config.convergence_deadline)

    def message(self, text: str) -> None:
        timestamped_message(text, self.console)

    async def partition(self, node: NodeAPI, millis: int) -> None:
        await self.cluster.partition(node, millis)

    async def increment(self, node: NodeAPI, amount: int) -> TxId:
        return await values.increment(node, amount)

    async def verify_values(self, expected: int, nodes: Optional[Sequence[NodeAPI]] = None) -> None:
        if nodes is None:
            nodes = self.nodes
        await values.verify_values(nodes, expected)


Scenario = Callable[[TrialEnv], Awaitable[None]]


class TrialDriver:
    """
    Runs a scenario against a freshly provisioned cluster, over and over, until
    a trial fails or the caller's predicate says to stop. Nothing survives from
    one trial to the next except the trial index.
    """

    def __init__(self, privacy: PrivacyMode, consensus: ConsensusKind, num_nodes: int,
                 scenario: Scenario, provisioner: Optional[ProvisionerAPI] = None,
                 config: Optional[TrialConfig] = None, console: Optional[Console] = None):
        if num_nodes < 1:
            raise ValueError(f"need at least one node, not {num_nodes}")
        if provisioner is None:
            from raftprobe.sim.sim_cluster import SimProvisioner
            provisioner = SimProvisioner()
        if config is None:
            config = TrialConfig()
        self.privacy = privacy
        self.consensus = consensus
        self.num_nodes = num_nodes
        self.scenario = scenario
        self.provisioner = provisioner
        self.config = config
        self.console = console
        self.trials_run = 0
        self.logger = logging.getLogger("TrialDriver")

    def get_console(self) -> Console:
        if self.console is None:
            return get_console()
        return self.console

    async def run_trial(self, index: int) -> Validity:
        console = self.get_console()
        node_ids = range(1, self.num_nodes + 1)
        keys = generate_cluster_keys(node_ids, self.config.password)
        env = ClusterEnv(consensus=self.consensus, privacy=self.privacy,
                         password=self.config.password, keys=keys)

        console.print(f"test #{index}", markup=False)
        self.trials_run += 1
        cluster = await self.provisioner.provision(env, self.num_nodes)
        try:
            await cluster.start_bootnode()
            instruments = await cluster.start_nodes()
            if self.privacy == PrivacyMode.enabled:
                await cluster.start_privacy_service()

            timestamped_message("awaiting a successful raft election", console)
            await await_all([inst.assumed_role for inst in instruments])
            timestamped_message("initial election succeeded", console)

            members = [Member(node, inst) for node, inst in zip(cluster.nodes, instruments)]
            trial_env = TrialEnv(index, cluster, members, self.config, console)
            # perform the actual test
            await self.scenario(trial_env)

            await settle_and_verify(instruments, self.config.settle_before_verify,
                                    self.config.retry_grace, console)
        except TrialFailure as e:
            self.logger.info("trial %d failed: %s", index, e.reason)
            return Falsified(e.reason)
        finally:
            await cluster.teardown()
        self.logger.info("trial %d verified", index)
        return VERIFIED

    async def run(self, predicate: Predicate, max_trials: Optional[int] = None) -> int:
        """
        Run trials 0, 1, 2, ... stopping after the first failure or the first
        trial for which predicate returns a "do" signal. With max_trials, stop
        there too, that counts as success. Returns the process exit status.
        """
        console = self.get_console()
        signal = TerminationSignal.dont_terminate
        index = 0
        while max_trials is None or index < max_trials:
            validity = await self.run_trial(index)
            if isinstance(validity, Falsified):
                print_failure_reason(validity.reason, console)
                signal = TerminationSignal.do_terminate_failure
            else:
                signal = predicate(index)
            if signal != TerminationSignal.dont_terminate:
                break
            index += 1

        if signal == TerminationSignal.do_terminate_failure:
            return FAILED_TEST_CODE
        if signal == TerminationSignal.dont_terminate:
            console.print("all successful!", markup=False)
        return 0


def n_times_predicate(times: int) -> Predicate:
    if times < 1:
        raise ValueError(f"times must be at least 1, not {times}")

    def predicate(index):
        if index == times - 1:
            return TerminationSignal.do_terminate_success
        return TerminationSignal.dont_terminate
    return predicate


def never_terminate(index: int) -> TerminationSignal:
    return TerminationSignal.dont_terminate


async def run_trials(predicate: Predicate, privacy: PrivacyMode, consensus: ConsensusKind,
                     num_nodes: int, scenario: Scenario, max_trials: Optional[int] = None,
                     **kwargs) -> int:
    """ Run the scenario until it fails or predicate says stop, returns the exit status """
    driver = TrialDriver(privacy, consensus, num_nodes, scenario, **kwargs)
    return await driver.run(predicate, max_trials=max_trials)


async def run_n_times(times: int, privacy: PrivacyMode, consensus: ConsensusKind,
                      num_nodes: int, scenario: Scenario, **kwargs) -> int:
    return await run_trials(n_times_predicate(times), privacy, consensus, num_nodes, scenario, **kwargs)


def tester(predicate: Predicate, privacy: PrivacyMode, consensus: ConsensusKind,
           num_nodes: int, scenario: Scenario, **kwargs) -> None:
    """ Process level entry point, exits with FAILED_TEST_CODE if a trial fails """
    code = asyncio.run(run_trials(predicate, privacy, consensus, num_nodes, scenario, **kwargs))
    if code != 0:
        sys.exit(code)


def n_times_tester(times: int, privacy: PrivacyMode, consensus: ConsensusKind,
                   num_nodes: int, scenario: Scenario, **kwargs) -> None:
    tester(n_times_predicate(times), privacy, consensus, num_nodes, scenario, **kwargs)
