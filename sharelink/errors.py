"""Share link error hierarchy.

The HTTP layer maps each subclass to a status code; anything else
(sqlite errors included) propagates untouched.
"""


class ShareLinkError(Exception):
    status_code = 400
    message = "share link error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class NotFoundError(ShareLinkError):
    """Unknown token, unknown file, or file removed since sharing."""

    status_code = 404
    message = "not found"


class ForbiddenError(ShareLinkError):
    """Requester does not own the file or link."""

    status_code = 403
    message = "forbidden"


class ExpiredError(ShareLinkError):
    """Token resolved at or after its expiry date."""

    status_code = 410
    message = "link expired"
