"""
Status-carrying exceptions.

Request handling aborts by raising one of these; the WSGI boundary in
:mod:`readdav.app` turns it into a bare status response.
"""

from http import HTTPStatus


class HTTPStatusError(Exception):
    """Abort the current request and answer with ``status``."""

    status = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(
        self,
        status: HTTPStatus | int | None = None,
        detail: str = "",
        headers: list[tuple[str, str]] | None = None,
    ):
        if status is not None:
            self.status = HTTPStatus(status)
        self.detail = detail
        # extra response headers, e.g. Content-Range on 416
        self.headers = list(headers or [])
        message = self.status_line
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)

    @property
    def status_line(self) -> str:
        return f"{self.status.value} {self.status.phrase}"


class BadRequest(HTTPStatusError):
    status = HTTPStatus.BAD_REQUEST


class Forbidden(HTTPStatusError):
    status = HTTPStatus.FORBIDDEN


class NotFound(HTTPStatusError):
    status = HTTPStatus.NOT_FOUND
