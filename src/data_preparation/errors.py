"""
Pipeline Errors
===============
Failure classes raised by the data preparation stages.

- AcquisitionError: raw panel source unreachable, missing or unreadable
- SchemaError: a table does not carry the columns its schema declares
- StageDependencyError: stage graph misconfigured or upstream artifact missing
"""


class PipelineError(Exception):
    """Base class for all data preparation failures."""


class AcquisitionError(PipelineError):
    """Raised when the raw panel cannot be fetched or materialised."""


class SchemaError(PipelineError):
    """Raised when a table is missing columns required by its schema."""

    def __init__(self, table: str, missing: list):
        self.table = table
        self.missing = list(missing)
        super().__init__(
            f"{table}: missing required column(s): {', '.join(self.missing)}"
        )


class StageDependencyError(PipelineError):
    """Raised when the stage graph cannot be resolved or executed."""
