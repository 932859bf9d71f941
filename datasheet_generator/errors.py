"""
Error taxonomy for the datasheet generator.

Every operation validates its input before touching the workspace, so any
of these exceptions means the workspace is exactly as it was before the
call.
"""


class DatasheetError(Exception):
    """Base class for all errors raised by the generator."""


class MalformedRangeError(DatasheetError):
    """A sheet's used-range descriptor is missing or cannot be parsed."""

    def __init__(self, descriptor, sheet_name=None):
        self.descriptor = descriptor
        self.sheet_name = sheet_name
        where = f" on sheet '{sheet_name}'" if sheet_name else ""
        super().__init__(f"Malformed used range {descriptor!r}{where}")


class InvalidFieldKeyError(DatasheetError):
    """A VARIABLE field key is empty."""


class EmptyValueError(DatasheetError):
    """A single value was empty after trimming."""


class EmptyPasteError(DatasheetError):
    """Bulk paste text produced no values."""


class TemplateNotLoadedError(DatasheetError):
    """An operation needs a template workbook but none was given."""


class NoGenerationTargetError(DatasheetError):
    """The key field is missing or has no values, so nothing can be generated."""

    def __init__(self, key_field, count=0):
        self.key_field = key_field
        self.count = count
        super().__init__(
            f"Key field '{key_field}' needs at least one value "
            f"(current value count: {count})"
        )


class ItemGenerationError(DatasheetError):
    """Building one output document failed; the whole batch is aborted."""

    def __init__(self, index, file_name, cause):
        self.index = index
        self.file_name = file_name
        self.cause = cause
        super().__init__(
            f"Failed to build item {index + 1} ({file_name}): {cause}"
        )


class GenerationCancelledError(DatasheetError):
    """Batch generation was cancelled between two items."""

    def __init__(self, completed):
        self.completed = completed
        super().__init__(f"Generation cancelled after {completed} item(s)")


class RelocationNotArmedError(DatasheetError):
    """``commit`` was called while no relocation was armed."""


class DuplicateProfileError(DatasheetError):
    """A profile with this name already exists."""


class ProfileNotFoundError(DatasheetError):
    """No profile with this name exists."""


class InvalidProfileFormatError(DatasheetError):
    """A profile document or profile name is not usable."""


class InvalidAddressError(DatasheetError):
    """A cell reference is not a single A1-style cell."""
