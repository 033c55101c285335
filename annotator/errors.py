"""Fatal error types. Anything raised from here ends the run."""

from typing import Optional


class AnnotatorError(Exception):
    """Base error for coverage-annotator."""

    pass


class CoverageFileError(AnnotatorError):
    """Coverage data could not be read, parsed, or understood."""

    pass


class GitHubError(AnnotatorError):
    """GitHub context was missing or the API rejected a request."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
