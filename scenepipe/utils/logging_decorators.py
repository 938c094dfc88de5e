"""
Logging decorators and timing helpers.
Standardizes how the mesh tools report duration and how the pipeline
accumulates import and conversion time for --profile.
"""
import functools
import logging
import time
from typing import Any, Callable, Dict


def log_function_call(func: Callable) -> Callable:
    """
    Decorator to log function entry, exit, duration and errors at DEBUG level.

    Usage:
        @log_function_call
        def concatenate(meshes):
            return result
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Any:
        logger = logging.getLogger(func.__module__)
        func_name = f"{func.__qualname__}"

        # Mesh buffers have long reprs, keep only the first two arguments
        args_repr = [repr(a) for a in args[:2]]
        kwargs_repr = [f"{k}={v!r}" for k, v in list(kwargs.items())[:2]]
        signature = ", ".join(args_repr + kwargs_repr)
        if len(args) > 2 or len(kwargs) > 2:
            signature += ", ..."

        logger.debug(f"→ {func_name}({signature})")

        start_time = time.perf_counter()
        try:
            result = func(*args, **kwargs)
            duration = time.perf_counter() - start_time
            logger.debug(f"← {func_name} completed in {duration:.3f}s")
            return result

        except Exception as e:
            duration = time.perf_counter() - start_time
            logger.debug(f"✗ {func_name} failed after {duration:.3f}s: {e}")
            raise

    return wrapper


class Durations:
    """Named elapsed-time buckets, e.g. 'import' and 'conversion'."""

    def __init__(self):
        self._totals: Dict[str, float] = {}

    def __getitem__(self, bucket: str) -> float:
        return self._totals.get(bucket, 0.0)

    def measure(self, bucket: str) -> "Duration":
        return Duration(self, bucket)

    def add(self, bucket: str, seconds: float) -> None:
        self._totals[bucket] = self._totals.get(bucket, 0.0) + seconds


class Duration:
    """
    Context manager adding the time spent inside it to a bucket.

    Usage:
        with durations.measure("conversion"):
            mesh = remove_duplicates(mesh)
    """

    def __init__(self, durations: Durations, bucket: str):
        self._durations = durations
        self._bucket = bucket
        self._start = 0.0

    def __enter__(self) -> "Duration":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._durations.add(self._bucket, time.perf_counter() - self._start)
