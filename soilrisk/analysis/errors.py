# soilrisk/analysis/errors.py
"""Exceptions raised by the evaluation engine and the version store."""


class ValidationError(ValueError):
    """Caller input that makes an evaluation impossible (no datapoints, unknown references)."""


class NotFoundError(LookupError):
    """A referenced output, version or catalog entry does not exist."""


class VersionConflictError(Exception):
    """Version number allocation collided with a concurrent writer."""

    def __init__(self, output_id: str, version_number: int, message: str = None):
        self.output_id = output_id
        self.version_number = version_number
        super().__init__(
            message or f"Version {version_number} of output {output_id} already exists"
        )


class CatalogError(ValueError):
    """A standards definition file could not be parsed."""
