"""Exception types raised by the release inspection engine.

Lookup failures derive from NotFoundError so the API layer can answer 404
without string matching. Partial diff unavailability is never an exception;
it is carried as an `Unavailable` change.
"""


class ReleaseInspectionError(Exception):
    """Base class for all engine errors."""


class NotFoundError(ReleaseInspectionError):
    pass


class UnknownEnvironmentError(NotFoundError):
    def __init__(self, environment: str):
        super().__init__(f"unknown environment {environment!r}")
        self.environment = environment


class EnvironmentReleaseNotFoundError(NotFoundError):
    def __init__(self, name: str):
        super().__init__(f"environment release {name!r} not found")
        self.name = name


class InvalidNameError(ReleaseInspectionError):
    """A release or environment-release name could not be parsed."""


class ConfigSchemaError(ReleaseInspectionError):
    """A configuration document does not have the expected shape."""


class ImageProvenanceError(ReleaseInspectionError):
    """Pulling or inspecting a container image failed."""


class RepositoryError(ReleaseInspectionError):
    pass


class CIServiceError(ReleaseInspectionError):
    pass
