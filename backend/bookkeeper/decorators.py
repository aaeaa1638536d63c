# Overview: Route decorators translating ledger errors into JSON responses.

from functools import wraps
from flask import jsonify, current_app

from .errors import LedgerError, PartialCascadeFailure


def handle_ledger_errors(f):
    """
    Map classified errors to HTTP responses:

    - InvalidArgument -> 400, NotFound -> 404, StorageFailure -> 503
    - PartialCascadeFailure -> 500 with details (sale id, failed stage)
    - anything else -> logged with traceback, 500
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except PartialCascadeFailure as e:
            current_app.logger.error("Partial cascade in %s: %s %s", f.__name__, e.message, e.details)
            return jsonify(e.to_dict()), e.status_code
        except LedgerError as e:
            return jsonify(e.to_dict()), e.status_code
        except Exception:
            current_app.logger.exception("Unhandled error in %s", f.__name__)
            return jsonify({"error": "Internal server error"}), 500

    return decorated_function
