"""Error categories shared by the indexer and the feed server.

Store connectivity and transaction failures are not wrapped: SQLAlchemy and
asyncpg exceptions propagate unchanged and are fatal for the task that hit
them. The feed server maps them to a 500.
"""

from sqlalchemy.exc import SQLAlchemyError


class ModIndexException(Exception):
    pass


class BadRequestException(ModIndexException):
    pass


class ForgeError(ModIndexException):
    """Non-recoverable problem talking to the forge (bad credentials, bad request)."""


class UpstreamError(ForgeError):
    """Rate limit or transient upstream failure. Callers back off and retry."""


class RateLimitedError(UpstreamError):
    def __init__(self, message: str, retry_after: float | None = None):
        self.retry_after = retry_after
        super().__init__(message)


class ForgeNotFoundError(ForgeError):
    """The forge reports the requested object (e.g. a repository) does not exist."""


class ModuleFileError(ModIndexException):
    """A go.mod file exists at a tag but is unparseable or declares an invalid path."""


class ShutdownRequestedError(ModIndexException):
    """Work was abandoned because the shutdown signal was raised."""


# Map exceptions to response codes
# Set message to None to use the error message from the exception
EXCEPTION_MAP = {
    BadRequestException: (400, None, 9001),
    SQLAlchemyError: (500, "Storage failure", 9002),
    OSError: (500, "Storage unavailable", 9003),
}
