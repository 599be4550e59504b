"""Error taxonomy of the OEE engine.

- InvalidInput: a calculator precondition was violated (raised synchronously).
- StoreError: the datastore failed; FetchError for reads, WriteError for writes.
- RunFailure: an aggregation run could not proceed at all (e.g. machine list unavailable).
"""


class OeeError(Exception):
    """Base class for every error raised by the engine."""


class InvalidInput(OeeError, ValueError):
    pass


class StoreError(OeeError):
    pass


class FetchError(StoreError):
    pass


class WriteError(StoreError):
    pass


class RunFailure(OeeError):
    pass
