"""
Parse SDK Exceptions.

Custom exception hierarchy for the SDK.
"""


class ParseError(Exception):
    """Base exception for all Parse SDK errors."""

    def __init__(self, message: str, code: int | None = None):
        self.message = message
        self.code = code
        super().__init__(message)


class ConnectionError(ParseError):
    """Raised when the Parse Server cannot be reached."""

    pass


class AuthenticationError(ParseError):
    """Raised when the server rejects the credentials, or a master key is required but missing."""

    pass


class QueryError(ParseError):
    """Raised when a query or write is rejected by the server."""

    def __init__(self, message: str, path: str | None = None, code: int | None = None):
        self.path = path
        super().__init__(message, code)


class ObjectNotFoundError(QueryError):
    """Raised when the server answers with Parse error 101 (object not found)."""

    pass


class NotInitializedError(ParseError):
    """Raised when no default client has been initialized."""

    pass
