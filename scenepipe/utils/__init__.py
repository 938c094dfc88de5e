"""
Shared helpers: logging decorators and profiling durations.
"""
from .logging_decorators import log_function_call, Durations, Duration

__all__ = [
    'log_function_call',
    'Durations',
    'Duration',
]
