class VaultError(Exception):
    status_code: int | None = 500
    default_message = "An unexpected error occurred. Please try again."

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class BadRequest(VaultError):
    status_code = 400
    default_message = "Bad request. Please check your input and try again."


class Unauthorized(VaultError):
    status_code = 401
    default_message = "Invalid username or password."


class InvalidPath(VaultError):
    status_code = 403
    default_message = "Invalid path"


class NotFound(VaultError):
    status_code = 404
    default_message = "Resource not found. Please check the URL and try again."


class Conflict(VaultError):
    status_code = 409
    default_message = "Conflict. This resource already exists."


class ServerError(VaultError):
    status_code = 500
    default_message = "Internal server error. Please try again later."


class NetworkError(VaultError):
    status_code = None
    default_message = "Unable to reach server. Please check your connection."


class ConfigError(Exception):
    pass


_BY_STATUS = {
    400: BadRequest,
    401: Unauthorized,
    403: InvalidPath,
    404: NotFound,
    409: Conflict,
}

_STATUS_MESSAGES = {
    422: "Validation error. Please check your input.",
    429: "Too many requests. Please wait a moment and try again.",
    502: "Bad gateway. The server is temporarily unavailable.",
    503: "Service unavailable. The server is temporarily down for maintenance.",
    504: "Gateway timeout. The server took too long to respond.",
}


def error_for_status(status_code: int, message: str | None = None) -> VaultError:
    cls = _BY_STATUS.get(status_code)
    if cls is not None:
        return cls(message)
    if status_code >= 500:
        return ServerError(message or _STATUS_MESSAGES.get(status_code), status_code)
    fallback = _STATUS_MESSAGES.get(
        status_code, f"Request failed with status code {status_code}. Please try again.")
    return VaultError(message or fallback, status_code)
