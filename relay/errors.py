# relay/errors.py
"""
Error taxonomy surfaced by the HTTP layer.

Each error carries the HTTP status it maps to and the message that is safe to
return to the caller. Internal detail (exception text, upstream errors) is
logged where the error is raised and never put into `public_message`, except
for StoreFailure on CRUD routes.
"""


class RelayServiceError(Exception):
    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message=None):
        if message is not None:
            self.public_message = message
        super().__init__(self.public_message)


class Unauthorized(RelayServiceError):
    status_code = 401
    public_message = "Unauthorized"


class InvalidRequest(RelayServiceError):
    status_code = 400
    public_message = "Invalid request body"


class InvalidTarget(RelayServiceError):
    status_code = 400
    public_message = "Invalid or unsafe URL"


class RelayTransportFailure(RelayServiceError):
    status_code = 500
    public_message = "Proxy request failed"


class RelayTimeout(RelayTransportFailure):
    public_message = "Proxy request timed out"


class ResponseTooLarge(RelayTransportFailure):
    public_message = "Proxy response exceeded size limit"


class StoreFailure(RelayServiceError):
    status_code = 500
    public_message = "Store request failed"


class RecordNotFound(RelayServiceError):
    status_code = 404
    public_message = "Record not found"
