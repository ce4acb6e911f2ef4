# Overview: Flask API routes for store team management; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_tenancy, require_policy
from ..errors import AuthFlowError
from ..permissions import (
    get_all_permission_codes,
    get_permission_definition,
    get_permissions_by_category,
    validate_permission_code,
)
from ..services import team_service


team_bp = Blueprint("team", __name__, url_prefix="/api/stores")


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# =============================================================================
# TEAM MEMBERS
# =============================================================================

@team_bp.get("/<int:store_id>/team")
@require_policy("TeamManage", store_arg="store_id")
def list_team(store_id: int):
    try:
        return jsonify({"store_id": store_id, "members": team_service.list_team(store_id)}), 200
    except AuthFlowError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to list team")
        return jsonify({"error": "Internal server error"}), 500


@team_bp.post("/<int:store_id>/invites")
@require_policy("TeamManage", store_arg="store_id")
def create_invite(store_id: int):
    """
    Invite someone to the store.

    Request body: {"email", "role", "custom_role_name"?}

    The raw token is in the response exactly once; the server keeps only its hash.
    """
    data = _body()
    try:
        invite, raw_token = team_service.create_invite(
            current_tenancy(),
            store_id,
            data.get("email"),
            data.get("role"),
            custom_role_name=data.get("custom_role_name"),
        )
        return jsonify({"invite": invite.to_dict(), "token": raw_token}), 201
    except AuthFlowError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to create invite")
        return jsonify({"error": "Internal server error"}), 500


@team_bp.put("/<int:store_id>/team/<int:user_id>/role")
@require_policy("TeamManage", store_arg="store_id")
def assign_role(store_id: int, user_id: int):
    data = _body()
    try:
        membership = team_service.assign_role(
            current_tenancy(),
            store_id,
            user_id,
            data.get("role"),
            custom_role_name=data.get("custom_role_name"),
        )
        return jsonify(membership.to_dict()), 200
    except AuthFlowError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to assign store role")
        return jsonify({"error": "Internal server error"}), 500


@team_bp.delete("/<int:store_id>/team/<int:user_id>")
@require_policy("TeamManage", store_arg="store_id")
def remove_member(store_id: int, user_id: int):
    """Remove a member and their explicit grants. The last Owner stays (409)."""
    try:
        team_service.remove_member(current_tenancy(), store_id, user_id)
        return jsonify({"removed": True}), 200
    except AuthFlowError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to remove team member")
        return jsonify({"error": "Internal server error"}), 500


@team_bp.post("/<int:store_id>/team/<int:user_id>/permissions")
@require_policy("TeamManage", store_arg="store_id")
def grant_permission(store_id: int, user_id: int):
    data = _body()
    try:
        grant = team_service.grant_permission(current_tenancy(), store_id, user_id, data.get("permission"))
        return jsonify(grant.to_dict()), 201
    except AuthFlowError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to grant store permission")
        return jsonify({"error": "Internal server error"}), 500


@team_bp.delete("/<int:store_id>/team/<int:user_id>/permissions")
@require_policy("TeamManage", store_arg="store_id")
def revoke_permission(store_id: int, user_id: int):
    data = _body()
    permission = data.get("permission") or request.args.get("permission")
    try:
        revoked = team_service.revoke_permission(current_tenancy(), store_id, user_id, permission)
        return jsonify({"revoked": revoked}), 200
    except AuthFlowError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to revoke store permission")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# ROLE TEMPLATES
# =============================================================================

@team_bp.get("/<int:store_id>/role-templates")
@require_policy("StoreSettingsRead", store_arg="store_id")
def list_role_templates(store_id: int):
    try:
        templates = team_service.list_role_templates(store_id)
        return jsonify({"store_id": store_id, "templates": [t.to_dict() for t in templates]}), 200
    except AuthFlowError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to list role templates")
        return jsonify({"error": "Internal server error"}), 500


@team_bp.post("/<int:store_id>/role-templates")
@require_policy("StoreSettingsWrite", store_arg="store_id")
def create_role_template(store_id: int):
    """
    Define a role template.

    Request body: {"name", "permissions": [codes] or "a,b,c"}
    """
    data = _body()
    try:
        template = team_service.create_role_template(
            current_tenancy(), store_id, data.get("name"), data.get("permissions")
        )
        return jsonify(template.to_dict()), 201
    except AuthFlowError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to create role template")
        return jsonify({"error": "Internal server error"}), 500


@team_bp.delete("/<int:store_id>/role-templates/<int:template_id>")
@require_policy("StoreSettingsWrite", store_arg="store_id")
def delete_role_template(store_id: int, template_id: int):
    try:
        team_service.delete_role_template(current_tenancy(), store_id, template_id)
        return jsonify({"deleted": True}), 200
    except AuthFlowError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to delete role template")
        return jsonify({"error": "Internal server error"}), 500


@team_bp.post("/<int:store_id>/role-templates/<int:template_id>/apply/<int:user_id>")
@require_policy("StoreSettingsWrite", store_arg="store_id")
def apply_role_template(store_id: int, template_id: int, user_id: int):
    try:
        membership = team_service.apply_role_template(current_tenancy(), store_id, template_id, user_id)
        return jsonify(membership.to_dict()), 200
    except AuthFlowError as exc:
        return jsonify(exc.to_dict()), exc.status_code
    except Exception:
        current_app.logger.exception("Failed to apply role template")
        return jsonify({"error": "Internal server error"}), 500


@team_bp.get("/<int:store_id>/permissions/catalog")
@require_policy("StoreSettingsRead", store_arg="store_id")
def permission_catalog(store_id: int):
    """
    Grantable store permissions, for building role templates.

    Query params:
    - category: str - filter by category
    """
    category = request.args.get("category")
    if category:
        codes = [perm[0] for perm in get_permissions_by_category(category.upper())]
    else:
        codes = get_all_permission_codes()
    permissions = [get_permission_definition(code) for code in codes if validate_permission_code(code)]
    return jsonify({"permissions": permissions}), 200
