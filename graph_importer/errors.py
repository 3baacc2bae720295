"""
Error taxonomy for the bulk importer.

Every failure the importer raises on purpose derives from ImporterError so
callers can tell loader failures apart from programming errors.
"""

from pathlib import Path
from typing import Optional, Sequence


class ImporterError(Exception):
    """Base class for all importer failures."""


class SchemaViolation(ImporterError):
    """A file header or declared triple does not match the workload schema."""


class UnsupportedType(ImporterError):
    """A declared property type is outside the supported type table."""


class ConnectionFailure(ImporterError):
    """The graph store could not be reached."""


class RowParseFailure(ImporterError):
    """A row could not be coerced or one of its vertex references is unknown."""

    def __init__(self, path: Path, row: Optional[int], reason: str):
        self.path = Path(path)
        self.row = row
        self.reason = reason
        where = f"{self.path.name}:{row}" if row is not None else self.path.name
        super().__init__(f"{where}: {reason}")


class CommitFailure(ImporterError):
    """The store rejected a batch transaction."""

    def __init__(self, path: Path, rows: int, reason: str):
        self.path = Path(path)
        self.rows = rows
        super().__init__(f"{self.path.name}: commit of {rows} rows failed: {reason}")


class PoolFailure(ImporterError):
    """A worker pool could not accept, run, or drain its tasks."""

    def __init__(
        self,
        message: str,
        errors: Sequence[BaseException] = (),
        stalled: bool = False,
    ):
        super().__init__(message)
        self.errors = list(errors)
        self.stalled = stalled
