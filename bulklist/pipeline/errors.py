"""Pipeline exceptions."""


class PipelineError(Exception):
    """Base class for bulk listing pipeline errors."""


class StageTransitionError(PipelineError, ValueError):
    """Raised when an operation is not allowed in the current stage."""


class BatchClosedError(PipelineError):
    """Raised for any operation on a finished batch."""


class InvalidStatusTransition(PipelineError, ValueError):
    """Raised for an illegal item status change."""


class EnrichmentError(PipelineError):
    """Enrichment produced no usable result for a group."""


class PersistenceError(PipelineError):
    """The listing store refused or failed to save a listing."""


class GroupNotFoundError(PipelineError, KeyError):
    """Raised when an operation names a group the batch does not hold."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Group not found"


class InvalidListingEdit(PipelineError, ValueError):
    """Raised when manual edits do not form valid listing data."""
