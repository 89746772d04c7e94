"""
raftprobe - a fault injection trial driver for replicated log clusters.

Each trial provisions a fresh cluster, runs a caller supplied disruption
scenario against it (partitions, membership churn, transaction spam) and then
checks that the cluster still holds up its end of the bargain:

- No node process died during the trial
- No submitted transaction was lost
- Every node converged on the same, non empty, last block

Trials repeat until one fails or the caller's predicate says to stop, and the
run ends with a process exit status.

Example usage:
    from raftprobe import n_times_tester, PrivacyMode, ConsensusKind

    async def scenario(env):
        await env.with_load(env.nodes, env.await_block_convergence)

    n_times_tester(5, PrivacyMode.disabled, ConsensusKind.raft, 3, scenario)
"""

__version__ = "0.1.0"
__author__ = "raftprobe Contributors"
__license__ = "MIT"

from .api.types import (ConsensusKind, PrivacyMode, TerminationSignal, Block,
                        OutstandingTxes, ValueMismatch)
from .api.failures import (FailureReason, FailureCode, Validity, Verified, Falsified, VERIFIED,
                           TrialFailure, RemoteCallError, WrongOrder, NoBlockFound,
                           TerminatedUnexpectedly, LostTransactions, AddMemberFailure,
                           RemoveMemberFailure, WrongValue, BlockDivergence, ConvergenceTimeout,
                           RemoteCallFailure)
from .api.cluster_api import NodeAPI, ClusterAPI, ProvisionerAPI, NodeInstrumentation, ClusterEnv
from .api.trial_config import TrialConfig, SimSettings
from .trials.validity import combine, reduce_validity, combine_termination
from .trials.driver import (TrialDriver, TrialEnv, run_trials, run_n_times, tester,
                            n_times_tester, FAILED_TEST_CODE)

__all__ = [
    # Entry points
    "TrialDriver",
    "TrialEnv",
    "run_trials",
    "run_n_times",
    "tester",
    "n_times_tester",
    "FAILED_TEST_CODE",

    # Configuration
    "TrialConfig",
    "SimSettings",
    "ConsensusKind",
    "PrivacyMode",

    # Verdicts
    "Validity",
    "Verified",
    "Falsified",
    "VERIFIED",
    "TerminationSignal",
    "combine",
    "reduce_validity",
    "combine_termination",

    # Failure taxonomy
    "FailureReason",
    "FailureCode",
    "TrialFailure",
    "RemoteCallError",
    "WrongOrder",
    "NoBlockFound",
    "TerminatedUnexpectedly",
    "LostTransactions",
    "AddMemberFailure",
    "RemoveMemberFailure",
    "WrongValue",
    "BlockDivergence",
    "ConvergenceTimeout",
    "RemoteCallFailure",

    # Collaborator interfaces
    "NodeAPI",
    "ClusterAPI",
    "ProvisionerAPI",
    "NodeInstrumentation",
    "ClusterEnv",
    "Block",
    "OutstandingTxes",
    "ValueMismatch",

    # Package metadata
    "__version__",
    "__author__",
    "__license__",
]
