# Overview: Request authentication and policy decorators for API routes.

from functools import wraps

from flask import g, jsonify

from .errors import AuthenticationRequired, PermissionDenied
from .extensions import db
from .models import Store
from .services import authorization_service, tenancy_service


def current_tenancy() -> tenancy_service.TenancyContext:
    """The context built by the before_request hook (anonymous if it never ran)."""
    return getattr(g, "tenancy", None) or tenancy_service.ANONYMOUS


def require_auth(f):
    """
    Require an authenticated caller.

    The caller was resolved from the bearer token before the view ran (see
    create_app). This only turns an anonymous context into a 401.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_tenancy().is_authenticated:
            return jsonify(AuthenticationRequired().to_dict()), 401
        return f(*args, **kwargs)

    return decorated_function


def require_policy(policy_name: str, store_arg: str | None = None):
    """
    Require a named authorization policy.

    store_arg names a view argument holding a store id. When given, the
    policy is evaluated against that store instead of the one selected by
    header/host, and g.tenancy is replaced with the store-specific context.

    Returns 401 for anonymous callers and 403 when the policy is not met
    (denials are written to security_events).
    """
    authorization_service.get_policy(policy_name)  # fail at import time on typos

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            context = current_tenancy()

            if store_arg is not None and context.is_authenticated:
                store = db.session.get(Store, kwargs.get(store_arg))
                if store is None:
                    return jsonify({"error": "not_found"}), 404
                if context.store_id != store.id:
                    context = tenancy_service.build_context(context.user, store, context.access_token)
                    g.tenancy = context

            try:
                authorization_service.authorize(context, policy_name)
            except AuthenticationRequired as e:
                return jsonify(e.to_dict()), e.status_code
            except PermissionDenied as e:
                body = e.to_dict()
                body["required_policy"] = policy_name
                return jsonify(body), e.status_code

            return f(*args, **kwargs)

        return decorated_function

    return decorator
