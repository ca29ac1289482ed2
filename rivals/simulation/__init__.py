"""Simulation module - orchestrates the two rival agents."""

from .runner import SimulationRunner
from .types import ErrorRecord, ErrorStats

__all__ = [
    "SimulationRunner",
    "ErrorRecord",
    "ErrorStats",
]
