"""
fidgraph - relationship counts for hub fids
============================================

Counts follow links and cast reactions stored in a Farcaster-style hub.

ARCHITECTURE:
    HubClient → EdgePageIterator → fast_count / full_count → GraphCountService
                                 ↘ FollowersBackfillWorker → GraphCache (Redis)

The online path reads GraphCache first and falls back to pagination on a miss.
The backfill worker is the only writer of cached snapshots.
"""

__version__ = "0.3.0"
