"""Custom exceptions for Mønlur."""


class MonlurError(Exception):
    """Base exception for Mønlur."""

    pass


class ObfuscationError(MonlurError):
    """An obfuscation job failed.

    Every subclass names its failure ``kind``; the kind and the message are
    what callers see in a failed job or an error response.
    """

    kind = "ObfuscationError"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind)
        self.message = message or self.kind


class EmptyInput(ObfuscationError):
    """Source text is empty or whitespace only."""

    kind = "EmptyInput"


class StorageUnavailable(ObfuscationError):
    """Workspace storage medium is exhausted or unavailable."""

    kind = "StorageUnavailable"


class IOFault(ObfuscationError):
    """Workspace storage rejected a read or write."""

    kind = "IOFault"


class EngineUnavailable(ObfuscationError):
    """Transform engine executable could not be launched."""

    kind = "EngineUnavailable"


class EngineExecutionFailed(ObfuscationError):
    """Transform engine rejected the input or crashed."""

    kind = "EngineExecutionFailed"


class EngineTimeout(ObfuscationError):
    """Transform engine exceeded its deadline."""

    kind = "EngineTimeout"


class ArtifactMissing(ObfuscationError):
    """Expected output artifact was never produced."""

    kind = "ArtifactMissing"


ERROR_KINDS: dict[str, type[ObfuscationError]] = {
    cls.kind: cls
    for cls in (
        EmptyInput,
        StorageUnavailable,
        IOFault,
        EngineUnavailable,
        EngineExecutionFailed,
        EngineTimeout,
        ArtifactMissing,
    )
}


def error_from_kind(kind: str, message: str) -> ObfuscationError:
    """Rebuild the exception for a recorded failure kind."""
    return ERROR_KINDS.get(kind, ObfuscationError)(message)
