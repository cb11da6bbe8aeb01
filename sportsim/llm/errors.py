"""Error taxonomy for calls to the generative-language oracle."""

from typing import Optional


class OracleError(Exception):
    """Base error for anything that goes wrong talking to the oracle."""

    pass


class MissingCredential(OracleError):
    """No valid access token is available. Fatal for oracle-dependent operations."""

    pass


class MalformedResponse(OracleError):
    """Oracle text could not be parsed as JSON."""

    def __init__(self, message: str, snippet: str = ""):
        super().__init__(message)
        self.snippet = snippet


class RateLimited(OracleError):
    """Oracle signalled quota exhaustion or overload (HTTP 429/503)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class OracleFailure(OracleError):
    """Any other oracle failure: HTTP errors, timeouts, transport errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
