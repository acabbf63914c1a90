"""
errors.py - Exception taxonomy and stable log identifiers for the build.
"""


class LID:
    """Stable identifiers attached to log records via ``extra={"lid": ...}``."""

    # Configuration / roots
    INVALID_OPTIONS = 1000
    ROOTS = 1001

    # Resolution
    MISSING_ASSET = 2001
    STATIC_ASSET = 2002

    # Transform
    CSS_MINIFY = 3001
    JS_MINIFY = 3002
    ESM_BUNDLE = 3003
    COPY = 3004
    MANIFEST = 3005

    # Rewrite / filesystem
    OUTPUT_WRITE = 4001
    COALESCE = 4002
    PLACEHOLDER = 4003

    # Orchestration
    DOCUMENT = 5001
    STATE = 5002

    # Preview servers
    SERVER_START = 6001
    SERVER_STOP = 6002


class ToBuildError(Exception):
    """Base class for every error raised by the build pipeline."""

    lid = None


class ConfigurationError(ToBuildError):
    lid = LID.INVALID_OPTIONS

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = errors or {}


class ResolutionError(ToBuildError):
    """A reference could not be matched against the Root or Static Sets."""

    lid = LID.MISSING_ASSET

    def __init__(self, uri, message=None):
        super().__init__(message or f"Could not find local path for {uri}")
        self.uri = uri


class TransformError(ToBuildError):
    """The minifier or bundler reported a failure for one entity."""

    lid = LID.CSS_MINIFY

    def __init__(self, message, lid=None):
        super().__init__(message)
        if lid is not None:
            self.lid = lid


class OutputWriteError(ToBuildError):
    """An output directory or file could not be written. Fatal for a document."""

    lid = LID.OUTPUT_WRITE


class PlaceholderError(ToBuildError):
    lid = LID.PLACEHOLDER


class InvalidTransitionError(ToBuildError):
    lid = LID.STATE
