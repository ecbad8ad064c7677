"""
Common building blocks for staged load tests.
"""

from .run_clock import RunClock
from .stage_spec import OperationKind, StageSpec
from .invoker import RequestInvoker
from .worker import Worker

__all__ = ['RunClock', 'OperationKind', 'StageSpec', 'RequestInvoker', 'Worker']
