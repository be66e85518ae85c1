"""Exception hierarchy for the office scheduler."""


class OfficeSchedulerError(Exception):
    """Base class for all engine errors."""


class DataStoreError(OfficeSchedulerError):
    """A collaborator (data store / appointment source) could not be read."""


class ConfigurationError(OfficeSchedulerError):
    """Configured values are unusable (e.g. a non-canonical default office)."""
