"""
Edge models

Two layers:
- Wire models: pydantic models for hub HTTP payloads, validated at the boundary.
  Message data is a tagged union on `data.type` (link add/remove, reaction add/remove,
  cast add/remove).
- Domain types: Edge, EdgePage and EdgeQuery, which the pagination and
  counting code works with.

A *_REMOVE message is a tombstone. It parses to an Edge with is_addition=False
and never counts toward a total.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

LINK_ADD = 'MESSAGE_TYPE_LINK_ADD'
LINK_REMOVE = 'MESSAGE_TYPE_LINK_REMOVE'
REACTION_ADD = 'MESSAGE_TYPE_REACTION_ADD'
REACTION_REMOVE = 'MESSAGE_TYPE_REACTION_REMOVE'
CAST_ADD = 'MESSAGE_TYPE_CAST_ADD'
CAST_REMOVE = 'MESSAGE_TYPE_CAST_REMOVE'

FOLLOW = 'follow'
CAST = 'cast'  # edge_type of a reply: author -> parent cast


class Direction(str, Enum):
    """Which end of the edge the subject sits on"""
    OUTGOING = 'outgoing'  # subject is the source (e.g. accounts it follows)
    INCOMING = 'incoming'  # subject is the target (e.g. its followers)


class ReactionKind(str, Enum):
    """Reaction sub-types; value is the query parameter the hub expects"""
    LIKE = 'Like'
    RECAST = 'Recast'

    @property
    def wire_type(self) -> str:
        """Reaction type as it appears inside message bodies"""
        return f"REACTION_TYPE_{self.value.upper()}"


# =============================================================================
# Wire models
# =============================================================================

class WireModel(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True, frozen=True)


class CastId(WireModel):
    fid: int
    hash: str


class LinkBody(WireModel):
    type: str
    target_fid: Optional[int] = Field(default=None, alias='targetFid')


class ReactionBody(WireModel):
    type: str
    target_cast_id: Optional[CastId] = Field(default=None, alias='targetCastId')
    target_url: Optional[str] = Field(default=None, alias='targetUrl')


class CastAddBody(WireModel):
    text: str = ''
    parent_cast_id: Optional[CastId] = Field(default=None, alias='parentCastId')
    parent_url: Optional[str] = Field(default=None, alias='parentUrl')


class CastRemoveBody(WireModel):
    target_hash: str = Field(alias='targetHash')


class LinkData(WireModel):
    type: Literal['MESSAGE_TYPE_LINK_ADD', 'MESSAGE_TYPE_LINK_REMOVE']
    fid: int
    timestamp: int = 0
    link_body: LinkBody = Field(alias='linkBody')


class ReactionData(WireModel):
    type: Literal['MESSAGE_TYPE_REACTION_ADD', 'MESSAGE_TYPE_REACTION_REMOVE']
    fid: int
    timestamp: int = 0
    reaction_body: ReactionBody = Field(alias='reactionBody')


class CastData(WireModel):
    type: Literal['MESSAGE_TYPE_CAST_ADD', 'MESSAGE_TYPE_CAST_REMOVE']
    fid: int
    timestamp: int = 0
    cast_add_body: Optional[CastAddBody] = Field(default=None, alias='castAddBody')
    cast_remove_body: Optional[CastRemoveBody] = Field(default=None, alias='castRemoveBody')


MessageData = Annotated[Union[LinkData, ReactionData, CastData], Field(discriminator='type')]


class HubMessage(WireModel):
    data: MessageData
    hash: str = ''

    def to_edge(self) -> 'Edge':
        data = self.data
        if isinstance(data, LinkData):
            return Edge(
                source_fid=data.fid,
                target_fid=data.link_body.target_fid,
                edge_type=data.link_body.type,
                added_at=data.timestamp,
                is_addition=data.type == LINK_ADD,
            )
        if isinstance(data, CastData):
            parent = data.cast_add_body.parent_cast_id if data.cast_add_body else None
            return Edge(
                source_fid=data.fid,
                target_fid=parent.fid if parent else None,
                edge_type=CAST,
                added_at=data.timestamp,
                is_addition=data.type == CAST_ADD,
                target_hash=parent.hash if parent else None,
            )

        cast_id = data.reaction_body.target_cast_id
        return Edge(
            source_fid=data.fid,
            target_fid=cast_id.fid if cast_id else None,
            edge_type=data.reaction_body.type,
            added_at=data.timestamp,
            is_addition=data.type == REACTION_ADD,
            target_hash=cast_id.hash if cast_id else None,
        )


class MessagesResponse(WireModel):
    """Paged response shared by linksByFid, linksByTargetFid, reactionsByCast and castsByParent"""
    messages: List[HubMessage] = Field(default_factory=list)
    next_page_token: Optional[str] = Field(default=None, alias='nextPageToken')


class DbStats(WireModel):
    num_messages: int = Field(default=0, alias='numMessages')
    num_fid_events: int = Field(default=0, alias='numFidEvents')
    num_fname_events: int = Field(default=0, alias='numFnameEvents')
    num_fid_registrations: Optional[int] = Field(default=None, alias='numFidRegistrations')


class HubInfo(WireModel):
    version: str = ''
    is_syncing: bool = Field(default=False, alias='isSyncing')
    nickname: str = ''
    db_stats: Optional[DbStats] = Field(default=None, alias='dbStats')


# =============================================================================
# Domain types
# =============================================================================

@dataclass(frozen=True)
class Edge:
    """
    A directed relationship from the hub ledger.

    Immutable; removals arrive as separate tombstone edges.
    """
    source_fid: int
    target_fid: Optional[int]
    edge_type: str  # 'follow', 'REACTION_TYPE_LIKE', 'cast', ...
    added_at: int  # hub timestamp
    is_addition: bool = True
    target_hash: Optional[str] = None  # reacted-to or replied-to cast


@dataclass(frozen=True)
class EdgePage:
    """One upstream page: every parsed message plus the continuation token"""
    edges: Tuple[Edge, ...]
    next_page_token: Optional[str] = None

    @property
    def item_count(self) -> int:
        """Raw item count as returned by the hub (before any filtering)"""
        return len(self.edges)

    @classmethod
    def from_response(cls, response: MessagesResponse) -> 'EdgePage':
        return cls(
            edges=tuple(message.to_edge() for message in response.messages),
            next_page_token=response.next_page_token,
        )


@dataclass(frozen=True)
class EdgeQuery:
    """
    Upstream filter for one edge listing.

    Build with the classmethods rather than by hand:
        EdgeQuery.followers(42)
        EdgeQuery.following(42)
        EdgeQuery.reactions(42, '0xabc...', ReactionKind.LIKE)
        EdgeQuery.replies(42, '0xabc...')
    """
    endpoint: str
    direction: Direction
    subject_fid: int
    edge_type: str  # value an Edge must carry to count
    filter_params: Tuple[Tuple[str, Union[str, int]], ...] = ()

    def params(self) -> Dict[str, Union[str, int]]:
        return dict(self.filter_params)

    def matches(self, edge: Edge) -> bool:
        """Only additions of the requested type, with a fid at the other end, count"""
        return (
            edge.is_addition
            and edge.edge_type == self.edge_type
            and self.related_fid(edge) is not None
        )

    def related_fid(self, edge: Edge) -> Optional[int]:
        """The fid at the other end of the edge from the subject"""
        if self.direction is Direction.INCOMING:
            return edge.source_fid
        return edge.target_fid

    def describe(self) -> str:
        return f"{self.endpoint}({self.subject_fid}, {self.edge_type})"

    @classmethod
    def following(cls, fid: int, link_type: str = FOLLOW) -> 'EdgeQuery':
        return cls(
            endpoint='linksByFid',
            direction=Direction.OUTGOING,
            subject_fid=fid,
            edge_type=link_type,
            filter_params=(('fid', fid), ('link_type', link_type)),
        )

    @classmethod
    def followers(cls, fid: int, link_type: str = FOLLOW) -> 'EdgeQuery':
        return cls(
            endpoint='linksByTargetFid',
            direction=Direction.INCOMING,
            subject_fid=fid,
            edge_type=link_type,
            filter_params=(('target_fid', fid), ('link_type', link_type)),
        )

    @classmethod
    def reactions(cls, fid: int, target_hash: str, kind: ReactionKind) -> 'EdgeQuery':
        return cls(
            endpoint='reactionsByCast',
            direction=Direction.INCOMING,
            subject_fid=fid,
            edge_type=kind.wire_type,
            filter_params=(
                ('target_fid', fid),
                ('target_hash', target_hash),
                ('reaction_type', kind.value),
            ),
        )

    @classmethod
    def replies(cls, fid: int, target_hash: str) -> 'EdgeQuery':
        """Casts whose parent is the cast (fid, target_hash)"""
        return cls(
            endpoint='castsByParent',
            direction=Direction.INCOMING,
            subject_fid=fid,
            edge_type=CAST,
            filter_params=(('fid', fid), ('hash', target_hash)),
        )
