# moviereco/domain/errors.py
"""
Domain exceptions raised by the retrieval-and-reasoning pipeline.

Blocked input is NOT an exception: the pipeline answers it with an explained
empty result. Everything below is surfaced to the caller (the HTTP layer maps
each class to a status code in main.py).
"""


class MovieRecoError(Exception):
    """Base class for every error the domain layer raises on purpose."""


class InvalidRequestError(MovieRecoError):
    """The caller's arguments are unusable (bad id count, empty query...)."""


class NotFoundError(MovieRecoError):
    """A caller-specified movie or user does not resolve in the catalog."""


class OutputValidationError(MovieRecoError):
    """The LLM returned something that failed the output guardrail."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


class UpstreamUnavailableError(MovieRecoError):
    """Embedding service, vector store or LLM failed (after retries, where applicable)."""
