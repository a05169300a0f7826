"""
Platform-wide exception hierarchy.

Services and AI components raise these types; blueprints register handlers
against them once and get consistent HTTP status codes everywhere.

Usage:
    from briefsmith.core.exceptions import NotFoundError, StageFailure

    raise NotFoundError(resource="Project", resource_id=42)
    raise StageFailure("writer", cause=parse_error)
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Maps to HTTP 404.

    Args:
        resource: Human-readable model/entity name (e.g. "Project").
        resource_id: The key that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(Exception):
    """Raised when the LLM configuration names something that cannot exist.

    Fatal and surfaced immediately (e.g. an unknown provider name in
    LLM_PRIMARY_PROVIDER). Missing API keys are *not* a configuration error;
    they surface as ProviderUnavailable on first use.
    """


class ProviderError(Exception):
    """A single backend call failed.

    Never escapes the gateway: providers convert it into a failed
    ProviderResult so the gateway can fall through to the next backend.
    """

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class ProviderUnavailable(Exception):
    """No configured backend produced a response.

    Maps to HTTP 503.

    Args:
        attempted: Names of the backends that were tried, in order. Empty
                   when no backend is configured at all.
        errors: Per-backend failure messages, keyed by backend name.
    """

    def __init__(self, attempted: list[str], errors: dict | None = None) -> None:
        self.attempted = list(attempted)
        self.errors = errors or {}
        if not self.attempted:
            msg = (
                "No LLM providers configured. Set SARVAM_API_KEY or "
                "GEMINI_API_KEY in the environment."
            )
        else:
            msg = f"All LLM providers failed (attempted: {', '.join(self.attempted)})"
        super().__init__(msg)


class ParseError(Exception):
    """Generated text could not be recovered into structured data.

    Args:
        preview: First 200 characters of the raw input.
        cause: The underlying decode error of the last attempt.
    """

    PREVIEW_CHARS = 200

    def __init__(self, text: str | None, cause: Exception | None = None) -> None:
        self.preview = (text or "")[:self.PREVIEW_CHARS]
        self.cause = cause
        reason = str(cause) if cause else "no structured data found"
        super().__init__(
            f"Failed to parse JSON response: {reason}. Content preview: {self.preview}"
        )


class CacheError(Exception):
    """A cache read or write failed. Always non-fatal; logged and swallowed."""


class StageFailure(Exception):
    """A pipeline stage produced output that could not be used.

    Aborts the whole documentation run; nothing is persisted. Maps to HTTP 502.

    Args:
        stage: Stage name (reader, searcher, budget_estimator, writer, verifier).
        cause: The ParseError (or shape error) that aborted the stage.
    """

    def __init__(self, stage: str, cause: Exception | None = None) -> None:
        self.stage = stage
        self.cause = cause
        msg = f"Pipeline stage '{stage}' failed"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)
