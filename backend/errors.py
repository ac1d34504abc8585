# Error taxonomy for the patient store and its collaborators


class PatientStoreError(Exception):
    """Base error. `message` is safe to show to the field worker."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PatientStoreError):
    """A required identity field is missing; the user corrects and resubmits."""


class StorageError(PatientStoreError):
    """The local store failed; nothing was written and the caller may retry."""


class StorageUnavailable(StorageError):
    """The storage area could not be opened at all."""


class NotFoundError(PatientStoreError):
    """A referenced patient or visit does not exist."""


class SpreadsheetImportError(PatientStoreError):
    """The bulk import file is unreadable or has no usable sheets."""


class ExportError(PatientStoreError):
    """The external spreadsheet endpoint rejected the record or was unreachable."""


class AIServiceError(PatientStoreError):
    """The remote text service failed or returned nothing usable."""
