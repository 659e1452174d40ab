"""
Error taxonomy

Only BackfillError is allowed to escape into the job queue's retry handling.
Everything else is recovered where it happens:
- HubError: the pagination iterator stops and callers degrade to partial counts
- CacheUnavailable: GraphCache treats it as a miss (reads) or a no-op (writes)
"""


class HubError(Exception):
    """Upstream hub call failed"""

    def __init__(self, message: str, status: int = None, endpoint: str = None):
        super().__init__(message)
        self.status = status
        self.endpoint = endpoint


class HubUnavailableError(HubError):
    """Network failure, timeout, or non-2xx status"""


class HubResponseError(HubError):
    """Payload did not match the expected response shape"""


class CacheUnavailable(Exception):
    """Redis connection or command failure"""


class BackfillError(Exception):
    """Whole-job failure; surfaces to the queue for redelivery"""


class SubjectBackfillError(BackfillError):
    """Backfill of a single fid failed; isolated inside its batch"""

    def __init__(self, fid: int, message: str):
        super().__init__(f"fid {fid}: {message}")
        self.fid = fid
