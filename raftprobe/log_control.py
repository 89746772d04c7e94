import os
import logging
from dataclasses import dataclass, field
from logging.config import dictConfig
from typing import Dict, List, Optional, Union, Any

LEVEL_MAP = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'WARN': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL
}

@dataclass
class HandlerDef:
    """Definition of a logging handler configuration."""
    name: str
    description: str
    handler_type: str  # 'stream', 'file'
    level: str = "DEBUG"
    formatter: str = "standard"
    stream: Optional[str] = None  # e.g., "ext://sys.stderr"
    filename: Optional[str] = None  # for file handlers
    mode: str = "a"
    encoding: str = "utf-8"
    handler_class: Optional[str] = None


@dataclass
class LoggerDef:
    """Definition of a logger configuration."""
    name: str
    description: str
    custom_level: Optional[str] = None
    propagate: bool = False
    handler_names: list[str] = field(default_factory=list, repr=False)


def level_name(level: Union[str, int]) -> str:
    if isinstance(level, int):
        for name, value in LEVEL_MAP.items():
            if value == level:
                return name
        return str(level)
    level_upper = level.upper()
    if level_upper not in LEVEL_MAP:
        raise ValueError(f"Invalid level: {level}. Valid levels: {list(LEVEL_MAP.keys())}")
    if level_upper == "WARN":
        return "WARNING"
    return level_upper


class LogController:
    """
    Owns the logging configuration for the trial driver and the simulated
    cluster. Every component logs to a named logger, and the names are
    registered here so that dictConfig does not disable them. Diagnostic
    logging goes to stderr, leaving stdout to the operator console.
    """
    controller = None

    @classmethod
    def get_controller(cls):
        if cls.controller is None:
            raise Exception('you must call make_controller first, or initialize it directly')
        return cls.controller

    @classmethod
    def make_controller(cls, *args, **kwargs):
        if cls.controller is not None:
            raise Exception('you must call make_controller one time only, then call get_controller afterwards')
        cls.controller = cls(*args, **kwargs)
        return cls.controller

    def __init__(self, additional_loggers: Optional[List[tuple]] = None, default_level: str = "ERROR",
                 logfile: Optional[os.PathLike] = None):
        if LogController.controller is not None:
            raise Exception('initializing LogController class twice causes issues')
        LogController.controller = self
        self.default_level = level_name(default_level)
        self.default_handlers: List[str] = ["stderr"]
        self.known_handlers = {
            "stderr": HandlerDef(
                name="stderr",
                description="Standard error handler",
                handler_type="stream",
                stream="ext://sys.stderr",
                handler_class="logging.StreamHandler"
            ),
        }
        if logfile is not None:
            self.known_handlers["file"] = HandlerDef(
                name="file",
                description="Trial log file",
                handler_type="file",
                filename=str(logfile),
                handler_class="logging.FileHandler"
            )
            self.default_handlers.append("file")
        self.known_loggers: Dict[str, LoggerDef] = {}
        for logger_name, description in [('', 'root logger'),
                                         ('TrialDriver', 'Trial execution loop'),
                                         ('Verifier', 'Post scenario verification'),
                                         ('Convergence', 'Bounded block convergence check'),
                                         ('Membership', 'Cluster membership changes'),
                                         ('LoadGen', 'Background transaction spammer'),
                                         ('SimCluster', 'Simulated cluster'),
                                         ('SimNode', 'Simulated cluster node'),
                                         ('SimulatedNetwork', 'Network simulation'),
                                         ]:
            self.known_loggers[logger_name] = LoggerDef(logger_name, description,
                                                        handler_names=self.default_handlers.copy())
        if additional_loggers:
            for logger_name, description in additional_loggers:
                self.known_loggers[logger_name] = LoggerDef(
                    logger_name, description, handler_names=self.default_handlers.copy()
                )
        self._saved_levels: Dict[str, int] = {}
        self.apply_config()

    @classmethod
    def from_env(cls, additional_loggers: Optional[List[tuple]] = None):
        """
        Build (or fetch) the controller and set the default level from the
        RAFTPROBE_DEBUG_LOGGING, RAFTPROBE_INFO_LOGGING and RAFTPROBE_WARN_LOGGING
        environment variables, falling back to error.
        """
        if cls.controller:
            log_control = cls.controller
            if additional_loggers:
                for logger_name, description in additional_loggers:
                    if logger_name not in log_control.known_loggers:
                        log_control.add_logger(logger_name, description)
        else:
            log_control = cls(additional_loggers=additional_loggers)
        if "RAFTPROBE_DEBUG_LOGGING" in os.environ:
            log_control.set_default_level('debug')
        elif "RAFTPROBE_INFO_LOGGING" in os.environ:
            log_control.set_default_level('info')
        elif "RAFTPROBE_WARN_LOGGING" in os.environ:
            log_control.set_default_level('warning')
        return log_control

    def set_logger_level(self, logger_name: str, level: Union[str, int]) -> None:
        if logger_name not in self.known_loggers:
            raise ValueError(f"Unknown logger: {logger_name}. Known loggers: {list(self.known_loggers.keys())}")
        level_str = level_name(level)
        logging.getLogger(logger_name).setLevel(LEVEL_MAP[level_str])
        self.known_loggers[logger_name].custom_level = level_str

    def set_default_level(self, level: Union[str, int]) -> None:
        """
        Set the level for all known loggers that don't have a custom level.
        """
        self.default_level = level_name(level)
        for logger_name, logger_def in self.known_loggers.items():
            if logger_def.custom_level is None:
                logging.getLogger(logger_name).setLevel(LEVEL_MAP[self.default_level])

    def get_logger_level(self, logger_name: str) -> int:
        if logger_name not in self.known_loggers:
            raise ValueError(f"Unknown logger: {logger_name}")
        return logging.getLogger(logger_name).level

    def add_logger(self, logger_name: str, description: str = "",
                   level: Optional[Union[str, int]] = None) -> logging.Logger:
        self.known_loggers[logger_name] = LoggerDef(logger_name, description,
                                                    handler_names=self.default_handlers.copy())
        self.apply_config()
        if level is not None:
            self.set_logger_level(logger_name, level)
        return logging.getLogger(logger_name)

    def save_current_levels(self) -> None:
        self._saved_levels = {name: logging.getLogger(name).level for name in self.known_loggers}

    def restore_saved_levels(self) -> None:
        if not self._saved_levels:
            raise RuntimeError("No saved levels to restore. Call save_current_levels() first.")
        for logger_name, saved_level in self._saved_levels.items():
            logging.getLogger(logger_name).setLevel(saved_level)
        self._saved_levels = {}

    def apply_config(self) -> None:
        dictConfig(self.to_dict_config())

    def to_dict_config(self) -> Dict[str, Any]:
        formatters = {
            "standard": {
                "format": "[%(asctime)s.%(msecs)03d %(levelname)-7s] %(name)-15s: %(message)s",
                'datefmt': "%H:%M:%S"
            }
        }
        handlers = {}
        for handler_name, handler_def in self.known_handlers.items():
            handler_config = {
                "level": handler_def.level,
                "formatter": handler_def.formatter,
                "class": handler_def.handler_class
            }
            if handler_def.handler_type == "stream" and handler_def.stream:
                handler_config["stream"] = handler_def.stream
            elif handler_def.handler_type == "file":
                handler_config["filename"] = handler_def.filename
                handler_config["mode"] = handler_def.mode
                handler_config["encoding"] = handler_def.encoding
            handlers[handler_name] = handler_config

        loggers = {}
        for logger_name, logger_def in self.known_loggers.items():
            if logger_def.custom_level is not None:
                level = logger_def.custom_level
            else:
                level = self.default_level
            loggers[logger_name] = {
                "handlers": logger_def.handler_names,
                "level": level,
                "propagate": logger_def.propagate
            }
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": formatters,
            "handlers": handlers,
            "loggers": loggers
        }
