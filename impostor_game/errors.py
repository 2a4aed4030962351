# impostor_game/errors.py
"""
Error kinds surfaced to clients.

Each kind carries the HTTP status it maps to; main.py turns any GameError
into {"error": kind, "detail": message}.
"""


class GameError(Exception):
    status_code = 500
    kind = "Internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"error": self.kind, "detail": self.message}


class Unauthorized(GameError):
    status_code = 401
    kind = "Unauthorized"


class Forbidden(GameError):
    status_code = 403
    kind = "Forbidden"


class NotFound(GameError):
    status_code = 404
    kind = "NotFound"


class Gone(GameError):
    """The room existed but has ended."""
    status_code = 410
    kind = "Gone"


class InvalidPhase(GameError):
    status_code = 409
    kind = "InvalidPhase"


class ValidationError(GameError):
    status_code = 400
    kind = "ValidationError"


class Conflict(GameError):
    status_code = 409
    kind = "Conflict"


class Internal(GameError):
    status_code = 500
    kind = "Internal"


class InsufficientPlayers(Conflict):
    pass


class TooManyImpostors(Conflict):
    pass
