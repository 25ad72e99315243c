"""
Helpers for the lazy pipeline service.

Covers logging setup, settings loading, performance measurement of terminal
runs, and turning declarative pipeline requests into lazy sequences.
"""

import gc
import logging
import operator
import os
import sys
import time
import tracemalloc
from typing import Any, Callable, Dict, List, Optional, Tuple

from errors import SourceLimitExceeded
from lazy import LazySequence
from models import Condition, ConditionOp, PipelineRequest, Settings


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure root logging once for the service and return its logger."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    return logging.getLogger('lazyseq')


logger = logging.getLogger('lazyseq.utils')


_ENV_PREFIX = "LAZYSEQ_"


def load_settings(environ: Optional[Dict[str, str]] = None) -> Settings:
    """Build Settings from LAZYSEQ_* variables; unset ones keep their defaults."""
    environ = os.environ if environ is None else environ
    values = {}
    for name in Settings.model_fields:
        raw = environ.get(_ENV_PREFIX + name.upper())
        if raw is not None:
            values[name] = raw
    return Settings(**values)


# Global performance tracking
_performance_metrics = {
    "operations": [],
    "total_time_ms": 0.0,
    "total_memory_mb": 0.0,
    "operation_count": 0,
    "failure_count": 0
}


def measure_performance(operation_name: str, func, *args, **kwargs) -> Tuple[Any, Dict[str, Any]]:
    """Run ``func`` under timing and tracemalloc; return (result, performance info).

    Failures are recorded and re-raised unchanged.
    """
    tracemalloc.start()
    gc.collect()
    start_time = time.perf_counter()

    try:
        result = func(*args, **kwargs)
    except Exception as e:
        _record(operation_name, start_time, success=False, error=str(e))
        raise
    else:
        info = _record(operation_name, start_time, success=True)
        info["result_size"] = len(result) if hasattr(result, "__len__") else None
        return result, info
    finally:
        tracemalloc.stop()


def _record(operation_name: str, start_time: float, success: bool, error: Optional[str] = None) -> Dict[str, Any]:
    execution_time_ms = (time.perf_counter() - start_time) * 1000
    _, peak = tracemalloc.get_traced_memory()
    memory_mb = peak / 1024 / 1024

    info = {
        "operation": operation_name,
        "execution_time_ms": execution_time_ms,
        "memory_usage_mb": memory_mb,
        "success": success,
        "timestamp": time.time()
    }
    if error is not None:
        info["error"] = error

    _performance_metrics["operations"].append(info)
    _performance_metrics["total_time_ms"] += execution_time_ms
    _performance_metrics["total_memory_mb"] += memory_mb
    _performance_metrics["operation_count"] += 1
    if not success:
        _performance_metrics["failure_count"] += 1
    return info


def get_performance_summary() -> Dict[str, Any]:
    """Get summary of all performance metrics"""
    count = _performance_metrics["operation_count"]
    if count == 0:
        return {
            "total_operations": 0,
            "failed_operations": 0,
            "total_time_ms": 0.0,
            "total_memory_mb": 0.0,
            "avg_time_ms": 0.0,
            "avg_memory_mb": 0.0
        }

    return {
        "total_operations": count,
        "failed_operations": _performance_metrics["failure_count"],
        "total_time_ms": _performance_metrics["total_time_ms"],
        "total_memory_mb": _performance_metrics["total_memory_mb"],
        "avg_time_ms": _performance_metrics["total_time_ms"] / count,
        "avg_memory_mb": _performance_metrics["total_memory_mb"] / count
    }


def clear_performance_metrics():
    """Clear all performance metrics"""
    global _performance_metrics
    _performance_metrics = {
        "operations": [],
        "total_time_ms": 0.0,
        "total_memory_mb": 0.0,
        "operation_count": 0,
        "failure_count": 0
    }


# --------- declarative pipeline builders ----------

_COMPARISONS: Dict[ConditionOp, Callable[[Any, Any], bool]] = {
    ConditionOp.EQ: operator.eq,
    ConditionOp.NE: operator.ne,
    ConditionOp.GT: operator.gt,
    ConditionOp.GE: operator.ge,
    ConditionOp.LT: operator.lt,
    ConditionOp.LE: operator.le,
    ConditionOp.IN: lambda left, right: left in right,
    ConditionOp.CONTAINS: lambda left, right: right in left,
}


def get_field(element: Any, field: Optional[str]) -> Any:
    """Read ``field`` from a mapping element; None means the element itself.

    Raises KeyError when the field is missing.
    """
    if field is None:
        return element
    if not isinstance(element, dict):
        raise KeyError(f"Cannot read field '{field}' from non-record element {element!r}")
    if field not in element:
        raise KeyError(f"Record has no field '{field}'")
    return element[field]


def build_predicate(condition: Condition) -> Callable[[Any], bool]:
    compare = _COMPARISONS[condition.op]
    field, expected = condition.field, condition.value

    def predicate(element):
        return bool(compare(get_field(element, field), expected))

    return predicate


def build_key(field: Optional[str]) -> Callable[[Any], Any]:
    return lambda element: get_field(element, field)


def build_score(field: Optional[str]) -> Callable[[Any], float]:
    """Score function reading a numeric field."""
    def score(element):
        value = get_field(element, field)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"Score must be numeric, got {value!r}")
        return value

    return score


def build_projection(fields: List[str]) -> Callable[[Any], Dict[str, Any]]:
    """Keep only ``fields`` (those present) of each record."""
    def project(element):
        if not isinstance(element, dict):
            raise KeyError(f"Cannot project fields from non-record element {element!r}")
        return {name: element[name] for name in fields if name in element}

    return project


def _capped_counting(start: int, step: int, limit: int) -> LazySequence:
    """Counting source that raises ``SourceLimitExceeded`` on pull number limit + 1."""
    def factory():
        value = start
        for _ in range(limit):
            yield value
            value += step
        raise SourceLimitExceeded(f"Source produced more than {limit} elements")

    return LazySequence.from_iterable(factory, bounded=False)


def build_pipeline(request: PipelineRequest, source_limit: Optional[int] = None) -> LazySequence:
    """
    Translate a request into a lazy sequence. Nothing is pulled here.

    With ``source_limit``, a range source fails once asked for more than that
    many elements. Boundedness is unchanged, so a range without a take step is
    still rejected before anything is pulled.
    """
    if request.range is not None and source_limit is not None:
        sequence = _capped_counting(request.range.start, request.range.step, source_limit)
    elif request.range is not None:
        sequence = LazySequence.counting(request.range.start, request.range.step)
    else:
        sequence = LazySequence.of(request.records)

    for step in request.steps:
        if step.type == "filter":
            sequence = sequence.filter(build_predicate(step.condition))
        elif step.type == "project":
            sequence = sequence.map(build_projection(step.fields))
        elif step.type == "skip":
            sequence = sequence.skip(step.count)
        elif step.type == "take":
            sequence = sequence.take(step.count)
        else:
            raise ValueError(f"Unknown step: {step.type}")

    logger.debug(f"Built pipeline with {len(request.steps)} steps (bounded={sequence.bounded})")
    return sequence
