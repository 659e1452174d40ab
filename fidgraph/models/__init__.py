"""
Domain and wire models.
"""
from .edges import (
    CAST,
    FOLLOW,
    Direction,
    Edge,
    EdgePage,
    EdgeQuery,
    HubInfo,
    HubMessage,
    MessagesResponse,
    ReactionKind,
)
from .graph import (
    BackfillBatch,
    BatchReport,
    FollowCounts,
    GraphCounts,
    GraphSnapshot,
    Job,
    ReactionCount,
    ReactionCounts,
    ReplyCount,
)

__all__ = [
    'CAST',
    'FOLLOW',
    'Direction',
    'Edge',
    'EdgePage',
    'EdgeQuery',
    'HubInfo',
    'HubMessage',
    'MessagesResponse',
    'ReactionKind',
    'BackfillBatch',
    'BatchReport',
    'FollowCounts',
    'GraphCounts',
    'GraphSnapshot',
    'Job',
    'ReactionCount',
    'ReactionCounts',
    'ReplyCount',
]
