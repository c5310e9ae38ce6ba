"""Scheduling: timers, processing callback and the service loop."""

from rollcall.scheduling.processor import EventProcessor, ProcessResult
from rollcall.scheduling.scheduler import ReconcileReport, Scheduler
from rollcall.scheduling.service import CycleReport, SchedulingService

__all__ = [
    "CycleReport",
    "EventProcessor",
    "ProcessResult",
    "ReconcileReport",
    "Scheduler",
    "SchedulingService",
]
