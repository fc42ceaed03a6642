"""Fatal bootstrap errors.

Every error raised here aborts the bootstrap. Callers are expected to
terminate the process; a fresh invocation re-runs the whole sequence.
The underlying cause, when there is one, is chained via ``raise ... from``.
"""


class BootstrapError(RuntimeError):
    """Base class for errors that abort the bootstrap."""


class MissingProgramArgsError(BootstrapError):
    """Raised when the resolved program arguments are missing or incomplete."""


class InvalidSiteConfigError(BootstrapError):
    """Raised when the root site config cannot be used (e.g. it is a function)."""


class CacheDirectoryError(BootstrapError):
    """Raised when the cache or output directory cannot be removed or created."""


class TemplateStagingError(BootstrapError):
    """Raised when the static template set cannot be copied into the cache."""


class RunnerTemplateError(BootstrapError):
    """Raised when the server-side runner template cannot be read or rewritten."""


class FingerprintError(BootstrapError):
    """Raised when a sentinel file exists but cannot be read for fingerprinting."""


class StatusStoreError(BootstrapError):
    """Raised when the cache status record cannot be written."""
