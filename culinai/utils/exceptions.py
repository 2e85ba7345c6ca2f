"""Custom exception classes."""


class CulinAIException(Exception):
    """Base exception for CulinAI."""

    pass


class AuthenticationError(CulinAIException):
    """Raised when the name/secret key gate rejects a login."""

    pass


class ValidationError(CulinAIException):
    """Raised when input validation fails."""

    pass


class GeminiError(CulinAIException):
    """Raised when no Gemini model could answer a request."""

    pass


class ImageProcessingError(CulinAIException):
    """Raised when image processing fails."""

    pass
