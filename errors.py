"""
API error types

Handlers raise these; `register_error_handlers()` turns them into JSON
responses. Messages are client-safe: internal detail only goes to the log.
"""
from flask import jsonify, request
from werkzeug.exceptions import HTTPException


class APIError(Exception):
    status_code = 500
    message = 'An unexpected error occurred. Please try again later.'

    def __init__(self, message=None, errors=None, code=None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        self.errors = errors
        self.code = code

    def to_dict(self):
        body = {'message': self.message}
        if self.errors:
            body['errors'] = self.errors
        if self.code:
            body['code'] = self.code
        return body


class RequestValidationError(APIError):
    status_code = 400
    message = 'Validation failed'


class AuthenticationError(APIError):
    status_code = 401
    message = 'Unauthorized'


class AuthorizationError(APIError):
    status_code = 403
    message = 'You do not have permission to perform this action'


class NotFoundError(APIError):
    status_code = 404
    message = 'Resource not found'


class ConflictError(APIError):
    status_code = 400
    message = 'Resource already exists'


class DependencyError(APIError):
    status_code = 400
    message = 'Resource is still referenced by other records'


class UnexpectedError(APIError):
    status_code = 500


def register_error_handlers(app, db):
    """Map every exception reaching the boundary to a JSON response"""

    @app.errorhandler(APIError)
    def handle_api_error(error):
        if error.status_code >= 500:
            db.session.rollback()
            app.logger.error(f"{type(error).__name__} on {request.method} {request.path}", exc_info=True)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({
            'message': error.description,
            'code': error.name.lower().replace(' ', '_')
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        """
        Last line of defence

        Rolls back the session and logs the full traceback; the client only
        ever sees the generic message.
        """
        db.session.rollback()
        app.logger.error(f"Unexpected error: {str(error)}", exc_info=True)
        return jsonify({'message': UnexpectedError.message}), 500
