from functools import wraps
from flask import abort
from flask_jwt_extended import verify_jwt_in_request
from app.services.policy import has_roles


def require_roles(*roles: str):
    """Verify the bearer token; when roles are given the `role` claim must be one of them."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if roles and not has_roles(*roles):
                abort(403, description='Missing role')
            return fn(*args, **kwargs)
        return wrapper
    return outer
