"""
Graph domain models

GraphSnapshot is what the backfill pipeline materializes per fid.
BackfillBatch is the unit of work on the backfill queue.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class GraphCounts:
    """Aggregate half of a snapshot (stored under its own cache key)"""
    fid: int
    follower_count: int
    following_count: int
    last_updated_at: int  # newest edge timestamp reflected in the counts

    def to_dict(self) -> Dict:
        return {
            'fid': self.fid,
            'followerCount': self.follower_count,
            'followingCount': self.following_count,
            'lastUpdated': self.last_updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'GraphCounts':
        return cls(
            fid=int(data['fid']),
            follower_count=int(data['followerCount']),
            following_count=int(data['followingCount']),
            last_updated_at=int(data.get('lastUpdated', 0)),
        )


@dataclass(frozen=True)
class GraphSnapshot:
    """
    Full follow graph of one fid.

    Counts always equal the lengths of the id lists; build through
    from_edges() so the two cannot drift apart.
    """
    fid: int
    followers: List[int] = field(default_factory=list)
    following: List[int] = field(default_factory=list)
    last_updated_at: int = 0

    @property
    def follower_count(self) -> int:
        return len(self.followers)

    @property
    def following_count(self) -> int:
        return len(self.following)

    @property
    def counts(self) -> GraphCounts:
        return GraphCounts(
            fid=self.fid,
            follower_count=self.follower_count,
            following_count=self.following_count,
            last_updated_at=self.last_updated_at,
        )

    @classmethod
    def from_edges(
        cls,
        fid: int,
        followers: List[int],
        following: List[int],
        last_updated_at: int = 0,
    ) -> 'GraphSnapshot':
        return cls(
            fid=fid,
            followers=list(followers),
            following=list(following),
            last_updated_at=last_updated_at,
        )


@dataclass(frozen=True)
class BackfillBatch:
    """One partition of the fid range, enqueued once as a processBatch-N job"""
    batch_number: int  # 1-based
    fids: List[int]
    total_batches: int

    @property
    def job_name(self) -> str:
        return f"processBatch-{self.batch_number}"

    def to_dict(self) -> Dict:
        return {
            'batchNumber': self.batch_number,
            'fids': list(self.fids),
            'totalBatches': self.total_batches,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'BackfillBatch':
        return cls(
            batch_number=int(data['batchNumber']),
            fids=[int(fid) for fid in data['fids']],
            total_batches=int(data['totalBatches']),
        )


@dataclass
class BatchReport:
    """Outcome of one processBatch job"""
    batch_number: int
    total_batches: int
    succeeded: List[int] = field(default_factory=list)
    failed: Dict[int, str] = field(default_factory=dict)  # fid -> error message

    @property
    def status(self) -> str:
        return 'completed_with_failures' if self.failed else 'completed'

    def summary(self) -> str:
        return (
            f"batch {self.batch_number}/{self.total_batches}: "
            f"{len(self.succeeded)} succeeded, {len(self.failed)} failed ({self.status})"
        )


@dataclass(frozen=True)
class FollowCounts:
    followers: int = 0
    following: int = 0


@dataclass(frozen=True)
class ReactionCount:
    count: int = 0


@dataclass(frozen=True)
class ReactionCounts:
    likes: int = 0
    recasts: int = 0


@dataclass(frozen=True)
class ReplyCount:
    count: int = 0


@dataclass(frozen=True)
class Job:
    """Queue envelope"""
    id: str
    name: str
    data: Dict = field(default_factory=dict)
    attempts: int = 0
    enqueued_at: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'data': self.data,
            'attempts': self.attempts,
            'enqueued_at': self.enqueued_at,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Job':
        return cls(
            id=data['id'],
            name=data['name'],
            data=data.get('data') or {},
            attempts=int(data.get('attempts', 0)),
            enqueued_at=data.get('enqueued_at'),
        )
