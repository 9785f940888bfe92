# Overview: Request and role decorators for API routes.

from functools import wraps

from flask import g, jsonify, request

from .permissions import OPERATION_ROLES, is_allowed
from .services import session_service


def require_auth(f):
    """
    Require a valid bearer token.

    Sets:
    - g.current_user: the authenticated User
    - g.session_context: the full SessionContext
    - g.token: the plaintext bearer token (used by logout)
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required", "kind": "unauthorized"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        context = session_service.validate_session(token)
        if context is None:
            return jsonify({"error": "Invalid or expired token", "kind": "unauthorized"}), 401

        g.current_user = context.user
        g.session_context = context
        g.token = token
        return f(*args, **kwargs)

    return decorated_function


def require_role(operation: str):
    """
    Allow the request only if the current user's role may perform `operation`.
    Must be stacked under @require_auth.
    """
    if operation not in OPERATION_ROLES:
        raise KeyError(f"Unknown operation: {operation}")

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required", "kind": "unauthorized"}), 401

            if not is_allowed(user.role, operation):
                return jsonify({
                    "error": "Permission denied",
                    "kind": "forbidden",
                    "details": {"operation": operation, "role": user.role},
                }), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator
