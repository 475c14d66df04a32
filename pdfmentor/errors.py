from __future__ import annotations


class PdfMentorError(Exception):
    """Base class for errors raised by the study material pipeline."""


class InsufficientContent(PdfMentorError):
    """Document text is too short for the requested operation."""

    def __init__(self, operation: str, minimum: int, actual: int) -> None:
        self.operation = operation
        self.minimum = minimum
        self.actual = actual
        super().__init__(
            f"Document text is too short to generate {operation} "
            f"({actual} characters, at least {minimum} required)."
        )


class QuizValidationError(PdfMentorError):
    """A quiz structure failed its schema checks."""


class DocumentParseError(PdfMentorError):
    """An uploaded document could not be read."""
