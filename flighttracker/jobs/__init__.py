"""
Background jobs for FlightTracker.

The collection job samples the last tracked route; the scheduler runs
it periodically or on demand with at most one instance per work name.
"""

from flighttracker.jobs.collection_job import FlightDataCollectionJob, JobResult, RunKind
from flighttracker.jobs.scheduler import (
    CollectionScheduler,
    ScheduledWork,
    WorkState,
    WORK_NAME_ONE_SHOT,
    WORK_NAME_PERIODIC,
)

__all__ = [
    'FlightDataCollectionJob',
    'JobResult',
    'RunKind',
    'CollectionScheduler',
    'ScheduledWork',
    'WorkState',
    'WORK_NAME_ONE_SHOT',
    'WORK_NAME_PERIODIC',
]
