"""Exception taxonomy for file-level, persistence and authorization failures.

Row-level validation problems are never raised; they travel as
:class:`~tax_qualifications.domain.models.ValidationError` values.
"""
from __future__ import annotations

from typing import Iterable

from .models import ValidationError


class QualificationError(Exception):
    """Base class for errors surfaced to the UI boundary."""


class FileParseError(QualificationError):
    """The uploaded file could not be turned into rows."""


class UnsupportedFileError(FileParseError):
    pass


class FileTooLargeError(FileParseError):
    pass


class BulkUploadError(QualificationError):
    """A batch commit failed; earlier batches may already be committed."""


class AuthorizationError(QualificationError):
    pass


class NotFoundError(QualificationError):
    pass


class RecordSchemaError(QualificationError):
    """A persisted document does not match the expected record shape."""


class UserAccountError(QualificationError):
    pass


class InvalidQualificationError(QualificationError):
    """A manually entered qualification failed validation."""

    def __init__(self, errors: Iterable[ValidationError]) -> None:
        self.errors = tuple(errors)
        super().__init__("; ".join(error.message for error in self.errors) or "Calificación inválida")
