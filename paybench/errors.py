"""
Harness-level exceptions.

Call-level failures never raise; they are recorded as failed outcomes.
Only faults that make the run itself impossible are exceptions.
"""


class HarnessError(Exception):
    """A fault that aborts the run with a non-zero exit code."""


class ConfigurationError(HarnessError):
    """Invalid stage, scenario or command-line configuration."""


class TargetUnreachableError(HarnessError):
    """The base URL cannot be parsed or its host cannot be resolved."""
