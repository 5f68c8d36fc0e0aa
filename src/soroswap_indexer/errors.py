"""Error taxonomy shared by all indexer components."""

from __future__ import annotations


class IndexerError(RuntimeError):
    """Base class for all indexer errors."""


class InvalidRequest(IndexerError):
    """Caller input is structurally unusable (e.g. an empty address list)."""


class ServiceUnavailable(IndexerError):
    """The ledger query service failed or answered with a non-ok status."""


class MalformedEntry(IndexerError):
    """A ledger entry response is missing entries or a value payload."""


class SubscribeFailure(IndexerError):
    """A subscribe call failed for one pair index or pair address."""

    def __init__(self, key: int | str, cause: BaseException | str) -> None:
        self.key = key
        self.cause = cause
        if isinstance(key, int):
            target = f"pair {key}"
        else:
            target = f"contract {key}"
        super().__init__(f"Error subscribing to {target}: {cause}")
