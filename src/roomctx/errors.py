"""Error types raised across the context engine."""


class RoomContextError(Exception):
    """Base class for engine errors."""


class ChunkingPrecondition(RoomContextError, ValueError):
    """Chunking parameters cannot guarantee forward progress."""


class EmbeddingFailure(RoomContextError):
    """No configured embedding model could embed the text."""


class GenerationFailure(RoomContextError):
    """The generative model call failed or timed out."""


class StoreUnavailable(RoomContextError):
    """A chunk store or conversation log call failed."""


class MalformedVector(RoomContextError):
    """A stored vector could not be parsed or has the wrong dimensionality."""


class SummaryParseFailure(RoomContextError):
    """Model output held no parseable JSON object."""
