# Overview: Flask API routes for platform role administration (platform owners only).

from flask import Blueprint, jsonify, request

from ..decorators import current_tenancy, require_policy
from ..errors import AuthFlowError
from ..services import team_service


platform_bp = Blueprint("platform", __name__, url_prefix="/api/platform")


@platform_bp.post("/users/<int:user_id>/roles")
@require_policy("PlatformOwner")
def grant_platform_role(user_id: int):
    """Request body: {"role": "owner" | "staff"}"""
    data = request.get_json(silent=True)
    data = data if isinstance(data, dict) else {}
    try:
        grant = team_service.grant_platform_role(user_id, data.get("role"), granted_by=current_tenancy().user_id)
        return jsonify(grant.to_dict()), 201
    except AuthFlowError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@platform_bp.delete("/users/<int:user_id>/roles")
@require_policy("PlatformOwner")
def revoke_platform_role(user_id: int):
    data = request.get_json(silent=True)
    data = data if isinstance(data, dict) else {}
    role = data.get("role") or request.args.get("role")
    try:
        revoked = team_service.revoke_platform_role(user_id, role, revoked_by=current_tenancy().user_id)
        return jsonify({"revoked": revoked}), 200
    except AuthFlowError as exc:
        return jsonify(exc.to_dict()), exc.status_code
