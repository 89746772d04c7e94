#!/usr/bin/env python
import json
import logging
import pytest

from raftprobe.api.trial_config import TrialConfig, SimSettings
from raftprobe.cli import build_parser, main
from raftprobe.trials.driver import FAILED_TEST_CODE
from log_control import setup_logging

log_control = setup_logging()
logger = logging.getLogger("test_code")

FAST_TIMINGS = dict(settle_before_verify=0.05, retry_grace=0.2, member_change_settle=0.01,
                    convergence_interval=0.02, convergence_deadline=2.0, spam_rate=50.0)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "timing.json"
    path.write_text(json.dumps(FAST_TIMINGS))
    return path


@pytest.fixture
def saved_levels():
    log_control.save_current_levels()
    yield
    log_control.restore_saved_levels()


def test_parser_defaults():
    args = build_parser().parse_args(["spam"])
    assert args.nodes == 3
    assert args.consensus == "raft"
    assert args.privacy is False
    assert args.times == 1
    args = build_parser().parse_args(["churn", "-n", "5", "-c", "clique", "-p", "-t", "0"])
    assert (args.nodes, args.consensus, args.privacy, args.times) == (5, "clique", True, 0)


def test_bad_arguments():
    with pytest.raises(SystemExit):
        main(["no_such_scenario"])
    with pytest.raises(SystemExit):
        main(["spam", "--nodes", "0"])
    with pytest.raises(SystemExit):
        main(["spam", "--times", "-1"])
    with pytest.raises(SystemExit):
        main(["spam", "-D", "-I"])


def test_config_file(config_file, tmp_path):
    config = TrialConfig.from_json_file(config_file)
    assert config.retry_grace == 0.2
    assert config.password == "abcd"
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps(dict(retry_grace=1.0, typo_setting=3)))
    with pytest.raises(ValueError):
        TrialConfig.from_json_file(bad)


def test_main_runs_trials(config_file, saved_levels, capsys):
    code = main(["spam", "--times", "2", "--config", str(config_file), "--block_period", "0.01", "-W"])
    assert code == 0
    out = capsys.readouterr().out
    assert "test #0" in out
    assert "test #1" in out


def test_main_reports_failure(config_file, saved_levels, capsys):
    code = main(["idle", "--config", str(config_file), "--block_period", "0.01"])
    assert code == FAILED_TEST_CODE
    assert "No block produced on any node" in capsys.readouterr().out


def test_config_values_checked(tmp_path):
    """
    Bad timing values are refused when the config is loaded, not when a
    trial or the spammer trips over them later.
    """
    for bad in [dict(spam_rate=0), dict(spam_rate=-1.0), dict(convergence_deadline=-10),
                dict(convergence_interval=0), dict(retry_grace="5"), dict(settle_before_verify=True),
                dict(password=1234)]:
        with pytest.raises(ValueError):
            TrialConfig.from_dict(bad)
    config = TrialConfig.from_dict(dict(settle_before_verify=0, retry_grace=0, member_change_settle=0))
    assert config.retry_grace == 0
    assert TrialConfig.from_dict(dict(spam_rate=5)).spam_rate == 5

    for bad in [dict(block_period=0), dict(discovery_delay=-0.1), dict(inbox_size=0),
                dict(inbox_size=2.5)]:
        with pytest.raises(ValueError):
            SimSettings(**bad)

    path = tmp_path / "zero_rate.json"
    path.write_text(json.dumps(dict(spam_rate=0)))
    with pytest.raises(SystemExit):
        main(["spam", "--config", str(path)])
    with pytest.raises(SystemExit):
        main(["spam", "--block_period", "-1"])
