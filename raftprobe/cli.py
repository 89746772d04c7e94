#!/usr/bin/env python
import argparse
import asyncio
import sys

from raftprobe.api.trial_config import TrialConfig, SimSettings
from raftprobe.api.types import ConsensusKind, PrivacyMode
from raftprobe.log_control import LogController
from raftprobe.scenarios import SCENARIOS
from raftprobe.sim.sim_cluster import SimProvisioner
from raftprobe.trials.driver import run_trials, n_times_predicate, never_terminate


def build_parser():
    parser = argparse.ArgumentParser(description='Run a disruption scenario against fresh simulated clusters '
                                     'until it fails or the trial count is reached')
    parser.add_argument('scenario', choices=sorted(SCENARIOS),
                        help='Disruption scenario to run in each trial')
    parser.add_argument('--nodes', '-n', type=int, default=3,
                        help='Number of nodes in each cluster')
    parser.add_argument('--consensus', '-c', choices=[c.name for c in ConsensusKind], default='raft',
                        help='Consensus mechanism of the cluster under test')
    parser.add_argument('--privacy', '-p', action='store_true',
                        help='Run a privacy service next to each node')
    parser.add_argument('--times', '-t', type=int, default=1,
                        help='Number of trials to run, 0 means run until one fails')
    parser.add_argument('--config', '-f',
                        help='JSON file with trial timing settings')
    parser.add_argument('--block_period', type=float, default=None,
                        help='Seconds between simulated block production rounds')

    group = parser.add_mutually_exclusive_group(required=False)
    group.add_argument('-D', '--debug', action='store_true',
                       help="Set global logging level to debug")
    group.add_argument('-I', '--info', action='store_true',
                       help="Set global logging level to info")
    group.add_argument('-W', '--warning', action='store_true',
                       help="Set global logging level to warning")
    group.add_argument('-E', '--error', action='store_true',
                       help="Set global logging level to error, which is the default")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.nodes < 1:
        parser.error("must have at least one node")
    if args.times < 0:
        parser.error("--times cannot be negative")

    log_controller = LogController.from_env()
    if args.debug:
        log_controller.set_default_level('debug')
    elif args.info:
        log_controller.set_default_level('info')
    elif args.warning:
        log_controller.set_default_level('warning')
    elif args.error:
        log_controller.set_default_level('error')

    try:
        if args.config:
            config = TrialConfig.from_json_file(args.config)
        else:
            config = TrialConfig()
        if args.block_period is not None:
            settings = SimSettings(block_period=args.block_period)
        else:
            settings = SimSettings()
    except ValueError as e:
        parser.error(str(e))

    if args.times == 0:
        predicate = never_terminate
    else:
        predicate = n_times_predicate(args.times)
    privacy = PrivacyMode.enabled if args.privacy else PrivacyMode.disabled
    code = asyncio.run(run_trials(predicate, privacy, ConsensusKind[args.consensus], args.nodes,
                                  SCENARIOS[args.scenario], provisioner=SimProvisioner(settings),
                                  config=config))
    return code


if __name__ == "__main__":
    sys.exit(main())
