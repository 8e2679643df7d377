"""Error taxonomy shared by the store, the state machine and the HTTP layer.

Every error carries a human-readable message and the HTTP status the API
answers with. Routes never build error responses by hand; the handler
registered in ``create_app`` renders ``{"error": message}``.
"""


class GameError(Exception):
    status_code = 400
    default_message = 'Request failed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {'error': self.message}


class ValidationError(GameError):
    status_code = 400
    default_message = 'Missing fields'


class Unauthorized(GameError):
    status_code = 403
    default_message = 'Not authorized'


class Forbidden(GameError):
    status_code = 403
    default_message = 'Forbidden'


class NotFound(GameError):
    status_code = 404
    default_message = 'Not found'


class ConflictError(GameError):
    status_code = 409
    default_message = 'Conflict'


class PreconditionFailed(GameError):
    status_code = 409
    default_message = 'Precondition failed'


class InvalidState(PreconditionFailed):
    default_message = 'Action not allowed in the current state'


class ResourceExhausted(GameError):
    status_code = 503
    default_message = 'Could not create a unique game code. Try again.'


class StoreFailure(GameError):
    status_code = 500
    default_message = 'Storage failure'
