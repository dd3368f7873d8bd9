"""Error types raised across the dream comic pipeline."""

from typing import Optional


class ComicGenerationError(RuntimeError):
    """Base class for pipeline failures."""


class NotSupportedError(ComicGenerationError):
    """Raised when neither the remote backend nor local generation can run."""


class GenerationCancelled(ComicGenerationError):
    """Raised inside a job when the caller asked it to stop."""


class EmptyResponseError(ComicGenerationError):
    """Raised when the text collaborator returns nothing usable."""


class CollaboratorTimeout(ComicGenerationError):
    """Raised when an external collaborator does not answer in time."""


class RenderFailure(ComicGenerationError):
    """Raised when a single panel could not be rendered."""

    def __init__(self, message: str, panel_index: Optional[int] = None):
        super().__init__(message)
        self.panel_index = panel_index


class CompositionFailure(ComicGenerationError):
    """Raised when a page has no panels to composite."""

    def __init__(self, message: str, page_number: Optional[int] = None):
        super().__init__(message)
        self.page_number = page_number


class BackendError(ComicGenerationError):
    """Raised for non-success answers from the remote comic backend."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "ComicGenerationError",
    "NotSupportedError",
    "GenerationCancelled",
    "EmptyResponseError",
    "CollaboratorTimeout",
    "RenderFailure",
    "CompositionFailure",
    "BackendError",
]
