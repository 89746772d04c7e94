import os
from raftprobe.log_control import LogController


def setup_logging():

    test_loggers = [('test_code', 'Test code logger')]
    log_control = LogController.from_env(additional_loggers=test_loggers)
    if "TEST_DEBUG_LOGGING" in os.environ:
        log_control.set_default_level('debug')
    if "TEST_INFO_LOGGING" in os.environ:
        log_control.set_default_level('info')
    return log_control
