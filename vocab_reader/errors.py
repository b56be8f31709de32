from __future__ import annotations


class ReaderError(Exception):
    """Base class for every error raised by the reader engine."""


class LookupFailure(ReaderError):
    """A dictionary lookup could not produce a usable entry."""

    def __init__(self, text: str, reason: str) -> None:
        super().__init__(f"lookup failed for {text!r}: {reason}")
        self.text = text
        self.reason = reason


class DictionaryConfigError(LookupFailure):
    pass


class SpeechFailure(ReaderError):
    pass


class ExportFailure(ReaderError):
    pass


class DocumentBusyError(ReaderError):
    """The document cannot be edited while an export capture is running."""
