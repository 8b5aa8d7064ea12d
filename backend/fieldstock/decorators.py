# Overview: Request decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g


def _header_int(name: str) -> int | None:
    raw = request.headers.get(name)
    if raw is None:
        return None
    raw = raw.strip()
    if not raw.isdigit():
        return None
    return int(raw)


def require_actor(f):
    """
    Establish actor and tenant context from the upstream auth layer.

    Authentication happens outside this service; the gateway forwards the
    authenticated identity as headers. Sets the following Flask g attributes:
    - g.user_id: acting user (performed_by / allocated_by / approved_by)
    - g.org_id: organization ID (tenant context) - REQUIRED

    Returns 401 if either header is missing or not a positive integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = _header_int("X-User-Id")
        org_id = _header_int("X-Org-Id")

        if not user_id or not org_id:
            return jsonify({"error": "Authentication required"}), 401

        g.user_id = user_id
        g.org_id = org_id

        return f(*args, **kwargs)

    return decorated_function


def page_args(default_limit: int = 100) -> tuple[int, int]:
    """Read limit/offset query parameters, clamped to INVENTORY_MAX_PAGE_SIZE."""
    limit = request.args.get("limit", default_limit, type=int)
    offset = request.args.get("offset", 0, type=int)
    max_limit = current_app.config.get("INVENTORY_MAX_PAGE_SIZE", 500)

    # Clamp limit
    if limit < 1:
        limit = 1
    if limit > max_limit:
        limit = max_limit
    if offset < 0:
        offset = 0
    return limit, offset


def bool_arg(name: str) -> bool | None:
    """Tri-state boolean query parameter: true / false / absent."""
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return raw.lower() == "true"
