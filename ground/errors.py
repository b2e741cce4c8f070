from __future__ import annotations


class GroundError(Exception):
    """Base for every error that maps onto an HTTP status at the boundary."""

    status_code = 500
    default_detail = "Internal server error."

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InputInvalid(GroundError):
    status_code = 400
    default_detail = "Invalid input."


class PathOutsideHome(InputInvalid):
    default_detail = "Path outside of home."


class PathNotFound(InputInvalid):
    default_detail = "Path not found."


class NotAuthenticated(GroundError):
    status_code = 401
    default_detail = "No login credentials found."


class TokenInvalid(NotAuthenticated):
    default_detail = "Invalid token."


class TokenExpired(NotAuthenticated):
    default_detail = "Token expired."


class NotAuthorized(GroundError):
    status_code = 401
    default_detail = "Not authorized."


class RateLimited(GroundError):
    status_code = 429
    default_detail = "Too many login attempts. Try again later."


class CommandFailed(GroundError):
    """A host utility could not be started or exited non-zero.

    ``detail`` is safe to show to the client; ``stderr`` is only for logs.
    """

    def __init__(self, program: str, detail: str | None = None, *, returncode: int | None = None, stderr: bytes = b""):
        self.program = program
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(detail or f"Failed to run {program}.")


class NamingExhausted(GroundError):
    default_detail = "Failed to find available file name."


class UploadFailed(GroundError):
    default_detail = "Failed to upload files."
