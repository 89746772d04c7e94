"""
Configuration classes for the trial driver and the simulated cluster.
"""
import json
import os
from dataclasses import dataclass, field, fields


def check_number(config, name: str, allow_zero: bool = False) -> None:
    value = getattr(config, name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, not {value!r}")
    if value < 0 or (value == 0 and not allow_zero):
        kind = "non negative" if allow_zero else "positive"
        raise ValueError(f"{name} must be {kind}, not {value!r}")


@dataclass
class TrialConfig:
    """
    Timing and load constants used while running trials. The defaults are the
    empirically chosen magnitudes the driver has always used, change them only
    when the cluster under test is known to be faster or slower.

    Args:
        settle_before_verify:
            Pause, in seconds, between the end of the scenario body and the first
            verification check.
        retry_grace:
            Extra pause before the second and final verification check, only
            taken when the first check failed with WrongOrder or NoBlockFound.
        member_change_settle:
            Pause before issuing a membership change, to avoid racing an
            in-flight election or log append.
        convergence_interval:
            Polling interval of the block convergence check.
        convergence_deadline:
            Overall deadline of the block convergence check.
        spam_rate:
            Transactions per second submitted to each node by the load generator.
        password:
            Password used when generating the per trial node keys.
    """
    settle_before_verify: float = 1.0
    retry_grace: float = 5.0
    member_change_settle: float = 2.0
    convergence_interval: float = 1.0
    convergence_deadline: float = 10.0
    spam_rate: float = 10.0
    password: str = field(default="abcd", repr=False)

    def __post_init__(self):
        for name in ("settle_before_verify", "retry_grace", "member_change_settle"):
            check_number(self, name, allow_zero=True)
        for name in ("convergence_interval", "convergence_deadline", "spam_rate"):
            check_number(self, name)
        if not isinstance(self.password, str):
            raise ValueError(f"password must be a string, not {type(self.password).__name__}")

    @classmethod
    def from_dict(cls, data: dict):
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"unknown trial config keys {sorted(unknown)}, valid keys are {sorted(known)}")
        return cls(**data)

    @classmethod
    def from_json_file(cls, path: os.PathLike):
        with open(path) as f:
            return cls.from_dict(json.load(f))


@dataclass
class SimSettings:
    """
    Timing of the in-process simulated cluster.

    Args:
        block_period:
            How often, in seconds, the leader considers minting a block.
        discovery_delay:
            How long the bootnode takes to introduce the nodes to each other.
        inbox_size:
            Maximum number of chain snapshots queued for a node, older ones are
            dropped since a newer chain contains them.
    """
    block_period: float = 0.05
    discovery_delay: float = 0.01
    inbox_size: int = 16

    def __post_init__(self):
        check_number(self, "block_period")
        check_number(self, "discovery_delay", allow_zero=True)
        if isinstance(self.inbox_size, bool) or not isinstance(self.inbox_size, int) or self.inbox_size < 1:
            raise ValueError(f"inbox_size must be a positive integer, not {self.inbox_size!r}")
