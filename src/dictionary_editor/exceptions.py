"""Custom exception hierarchy for dictionary-editor."""


class DictionaryEditorError(Exception):
    """Base exception for all dictionary-editor errors."""


class ValidationError(DictionaryEditorError):
    """Invalid input (blank required field, bad enum value, disabled language)."""


class EntityNotFoundError(DictionaryEditorError):
    """Entity doesn't exist, or isn't visible on a public read path."""


class ConflictError(DictionaryEditorError):
    """Uniqueness violation or dependents blocking a delete."""


class StaleVersionError(ConflictError):
    """Row was modified since it was read (optimistic version mismatch)."""


class InvalidTransitionError(DictionaryEditorError):
    """Editorial status change rejected by the workflow guard."""


class DatabaseError(DictionaryEditorError):
    """Schema version mismatch, connection failure."""


class ConfigError(DictionaryEditorError):
    """Unreadable or malformed configuration file."""
