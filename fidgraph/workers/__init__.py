"""
Queue workers.
"""
from .followers_backfill import FollowersBackfillWorker, partition_fids
from .backfill_scheduler import BackfillScheduler, schedule_backfill, trigger_backfill

__all__ = [
    'FollowersBackfillWorker',
    'partition_fids',
    'BackfillScheduler',
    'schedule_backfill',
    'trigger_backfill',
]
