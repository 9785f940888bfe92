# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/retailpos/routes/auth.py
"""
Authentication API routes.

Users are created by administrators through the CLI (`flask users create`);
there is no self-registration endpoint.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import DomainError, error_response
from ..services import auth_service, session_service
from ..validation import json_body

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    The token must be sent as `Authorization: Bearer <token>` afterwards.
    """
    try:
        data = json_body()
    except DomainError as e:
        return error_response(e)
    username = data.get("username")
    password = data.get("password")

    if not username or not password:
        return jsonify({"error": "username and password required", "kind": "validation_failed"}), 400

    try:
        user = auth_service.authenticate(username, password)
        if user is None:
            return jsonify({"error": "Invalid credentials", "kind": "unauthorized"}), 401

        session, token = session_service.create_session(
            user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Login failed"}), 500

    current_app.logger.info("User %s logged in", user.username)
    return jsonify({
        "token": token,
        "expires_at": session.to_dict()["expires_at"],
        "user": user.to_dict(),
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(g.token)
    except DomainError as e:
        return error_response(e)
    return jsonify({"ok": True}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
