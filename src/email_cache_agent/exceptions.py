"""Custom exceptions for Email Cache Agent."""


class EmailCacheError(Exception):
    """Base exception for all Email Cache Agent errors."""


class ServiceUnavailableError(EmailCacheError):
    """Exception raised when a remote client handle was never initialized."""


class GmailAPIError(EmailCacheError):
    """Exception raised for Gmail API related errors."""


class OllamaConnectionError(EmailCacheError):
    """Exception raised when unable to connect to Ollama."""


class OllamaInferenceError(EmailCacheError):
    """Exception raised when Ollama inference fails."""


class ConfigurationError(EmailCacheError):
    """Exception raised for configuration related errors."""


class AuthenticationError(EmailCacheError):
    """Exception raised for authentication failures."""


class ValidationError(EmailCacheError):
    """Exception raised for data validation errors."""


class CacheBusyError(EmailCacheError):
    """Exception raised when the local cache stays locked past the busy timeout."""


class PredicateError(EmailCacheError):
    """Exception raised when a channel predicate is outside the allowed grammar."""


class VectorDimensionError(EmailCacheError):
    """Exception raised when two vectors of different dimension are compared."""


class LocalInconsistencyError(EmailCacheError):
    """Exception raised when a remote mutation succeeded but the local cache was not updated.

    The next sync reconciles the cache; callers should surface this rather than
    treat the operation as failed on the server.
    """
