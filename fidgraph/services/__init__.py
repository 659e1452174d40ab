"""
Services: hub client, counting strategies, graph cache, job queue.

Import from the submodules directly, e.g.
    from fidgraph.services.graph_cache import GraphCache
"""
