import json
from datetime import datetime, timezone
from functools import wraps

from flask import current_app, jsonify
from flask_jwt_extended import (
    JWTManager,
    create_access_token,
    get_jwt,
    get_jwt_identity,
    verify_jwt_in_request,
)

jwt = JWTManager()


def revoked_tokens():
    """jti -> exp of every unexpired token handed back through logout, per app."""
    return current_app.extensions.setdefault("revoked_tokens", {})


@jwt.token_in_blocklist_loader
def _is_revoked(jwt_header, jwt_payload):
    return jwt_payload["jti"] in revoked_tokens()


@jwt.unauthorized_loader
def _missing_token(reason):
    return jsonify({"message": "Authentication required", "error": reason}), 401


@jwt.invalid_token_loader
def _invalid_token(reason):
    return jsonify({"message": "Invalid token", "error": reason}), 401


@jwt.expired_token_loader
def _expired_token(jwt_header, jwt_payload):
    return jsonify({"message": "Token has expired"}), 401


@jwt.revoked_token_loader
def _revoked_token(jwt_header, jwt_payload):
    return jsonify({"message": "Token has been revoked"}), 401


def issue_token(record, kind):
    """Sign a token for an admin or user record; ``kind`` is "admin" or "user"."""
    role = "admin" if kind == "admin" else record["role"]
    return create_access_token(identity=json.dumps({"id": record["id"], "kind": kind, "role": role}))


def current_identity():
    return json.loads(get_jwt_identity())


def revoke_current_token():
    token = get_jwt()
    revoked = revoked_tokens()
    now = datetime.now(timezone.utc).timestamp()
    # forget tokens that have expired since
    for jti, exp in list(revoked.items()):
        if exp <= now:
            del revoked[jti]
    revoked[token["jti"]] = token.get("exp", float("inf"))


def _guard(allowed):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if not allowed(current_identity()):
                return jsonify({"message": "Unauthorized"}), 403
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def _is_admin(identity):
    return identity["kind"] == "admin"


admin_required = _guard(_is_admin)
coordinator_required = _guard(
    lambda identity: _is_admin(identity) or identity["role"] in ("coordinator", "super_admin")
)
super_admin_required = _guard(lambda identity: _is_admin(identity) or identity["role"] == "super_admin")
