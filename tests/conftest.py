"""
Pytest configuration file.

This file ensures that the project root is in the Python path
so that test files can import lazy, terminals, utils, models and app.
"""

import sys
from pathlib import Path

# Add the parent directory to the Python path
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

import pytest


class CallCounter:
    """Wraps a function and records every argument it is called with."""

    def __init__(self, fn=lambda x: x):
        self.fn = fn
        self.calls = []

    def __call__(self, value):
        self.calls.append(value)
        return self.fn(value)

    @property
    def count(self):
        return len(self.calls)


@pytest.fixture
def counter():
    """Factory for call-counting wrappers."""
    return CallCounter


@pytest.fixture
def scored_records():
    """Running example: records with a numeric score and a category."""
    return [
        {"name": "a", "score": 5, "category": "x"},
        {"name": "b", "score": 9, "category": "y"},
        {"name": "c", "score": 9, "category": "x"},
        {"name": "d", "score": 1, "category": "z"},
    ]


@pytest.fixture(autouse=True)
def reset_performance_metrics():
    """Each test starts with empty performance metrics"""
    from utils import clear_performance_metrics
    clear_performance_metrics()
    yield
