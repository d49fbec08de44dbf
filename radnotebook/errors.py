"""
JSON error responses

Every handler answers with {"error": "..."} and a conventional status code.
Internal details are logged, never returned.
"""
from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException

from radnotebook import db


class ApiError(Exception):
    """An error that is safe to show to the caller"""
    status_code = 400

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self):
        body = {'error': self.message}
        if self.details:
            body['details'] = self.details
        return body


class NotFound(ApiError):
    status_code = 404


class Forbidden(ApiError):
    status_code = 403


HTTP_MESSAGES = {
    400: 'Bad request',
    401: 'Authorization header required',
    403: 'Forbidden',
    404: 'Not found',
    405: 'Method not allowed',
    413: 'Request body too large',
}


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        message = HTTP_MESSAGES.get(e.code, e.name)
        return jsonify({'error': message}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        db.session.rollback()
        current_app.logger.exception("Unexpected error: %s", type(e).__name__)
        return jsonify({'error': 'Internal server error'}), 500
