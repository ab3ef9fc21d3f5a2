"""Exceptions for the ingestion, retrieval and generation pipeline."""


class SeahorseError(Exception):
    """Base exception for agent errors."""

    def __init__(self, message: str, stage: str = "agent", http_status: int = 500):
        self.message = message
        self.stage = stage
        self.http_status = http_status
        super().__init__(message)


class InitializationError(SeahorseError):
    """Model, embedding or index setup failed; the agent is unusable."""

    def __init__(self, message: str):
        super().__init__(message, "initialization", 500)


class ProviderFetchError(SeahorseError):
    """A single provider's data could not be fetched or parsed."""

    def __init__(self, message: str, provider_id: str = ""):
        self.provider_id = provider_id
        super().__init__(message, "provider_fetch", 502)


class RegistryUnavailableError(SeahorseError):
    """The provider registry as a whole could not be reached."""

    def __init__(self, message: str):
        super().__init__(message, "registry", 503)


class EmbeddingError(SeahorseError):
    """The embedding backend failed to produce vectors."""

    def __init__(self, message: str):
        super().__init__(message, "embedding", 502)


class DimensionError(SeahorseError, ValueError):
    """A vector's dimension does not match the index or service dimension."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Vector dimension mismatch: expected {expected}, got {actual}",
            "vector_index",
            500,
        )


class NotReadyError(SeahorseError):
    """A query operation was called before the agent reached READY."""

    def __init__(self, message: str = "Agent is not ready"):
        super().__init__(message, "agent_state", 503)


class GenerationError(SeahorseError):
    """The chat model failed (or timed out) while generating a response."""

    def __init__(self, message: str):
        super().__init__(message, "generation", 502)
