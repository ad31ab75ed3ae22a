# Overview: Request decorators for API routes.

from functools import wraps

from flask import current_app

from .validation import ConflictError, NotFoundError, StorageError, ValidationError


def ledger_operation(success_status: int = 200):
    """
    Map ledger outcomes to HTTP responses.

    - success: the view's return value with success_status
    - NotFoundError -> 404, ConflictError -> 409, ValidationError -> 400,
      each with {"error": message}
    - StorageError and anything unexpected -> 500 with an opaque message;
      the detail goes to the log only
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                result = f(*args, **kwargs)
            except NotFoundError as e:
                return {"error": str(e)}, 404
            except ConflictError as e:
                return {"error": str(e)}, 409
            except ValidationError as e:
                return {"error": str(e)}, 400
            except StorageError:
                current_app.logger.exception("Storage failure in %s", f.__name__)
                return {"error": "Storage failure"}, 500
            except Exception:
                current_app.logger.exception("Unexpected failure in %s", f.__name__)
                return {"error": "Internal server error"}, 500
            return result, success_status

        return decorated_function

    return decorator
