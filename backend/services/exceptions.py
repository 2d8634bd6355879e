class IngestionError(Exception):
    """Base class for lead import failures."""


class SourceUnreachable(IngestionError):
    """The row source could not be read. Fatal to a run; the cursor stays put."""


class RowValidationError(IngestionError):
    """A row is missing required data or carries template/test values."""


class RowInsertError(IngestionError):
    """Creating the lead for a row failed in the lead store."""


class ConfigurationInvalid(IngestionError):
    """An import configuration was rejected before it was saved."""


class CursorRegressionError(ValueError):
    """An ingestion cursor was asked to move backwards."""
