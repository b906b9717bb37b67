"""Exception hierarchy shared by the gateway, OCR client and form actions."""


class StudyBuddyError(Exception):
    """Base class for errors raised by this package."""


class ConfigurationError(StudyBuddyError):
    """A required credential or setting is missing."""


class DispatchError(StudyBuddyError):
    """The model invoked a function that has no matching local handler."""

    def __init__(self, function_name: str, message: str = "") -> None:
        self.function_name = function_name
        super().__init__(message or f"No local handler registered for function '{function_name}'")


class OCRError(StudyBuddyError):
    """The OCR service returned an error payload."""
