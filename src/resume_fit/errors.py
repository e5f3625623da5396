"""Error taxonomy shared by every stage of the engine."""

from __future__ import annotations


class ResumeFitError(Exception):
    """Base class for all errors raised by resume_fit."""


class ConfigurationError(ResumeFitError, ValueError):
    """Invalid configuration (e.g. a non-positive space budget cap). Never retried."""


class NotFoundError(ResumeFitError, LookupError):
    """A plan references a story or bullet that is absent from the supplied items."""

    def __init__(self, message: str, *, story_id: str | None = None, bullet_id: str | None = None):
        super().__init__(message)
        self.story_id = story_id
        self.bullet_id = bullet_id


class ExternalServiceError(ResumeFitError):
    """A judgment, rewrite or render collaborator failed."""

    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service
