# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)
# Store permissions are granted per store; platform permissions come only from platform roles.

from .categories import PermissionCategory


# -- STORE --

STORE_SETTINGS_PERMISSIONS = [
    (
        "store.settings.read",
        "View Store Settings",
        "View store configuration",
        PermissionCategory.STORE,
    ),
    (
        "store.settings.write",
        "Edit Store Settings",
        "Change store configuration",
        PermissionCategory.STORE,
    ),
    (
        "store.settings.manage",
        "Manage Store Settings",
        "Full control of store configuration, including checkout and tax setup",
        PermissionCategory.STORE,
    ),
    (
        "store.branding.manage",
        "Manage Branding",
        "Edit theme, logo, and storefront appearance",
        PermissionCategory.STORE,
    ),
    (
        "store.domains.manage",
        "Manage Domains",
        "Attach and detach custom domains",
        PermissionCategory.STORE,
    ),
]


# -- CATALOG --

CATALOG_PERMISSIONS = [
    ("products.read", "View Products", "View products and variants", PermissionCategory.CATALOG),
    ("products.write", "Edit Products", "Create and edit products", PermissionCategory.CATALOG),
    ("products.create", "Create Products", "Create new products", PermissionCategory.CATALOG),
    ("products.update", "Update Products", "Update existing products", PermissionCategory.CATALOG),
    ("products.delete", "Delete Products", "Delete products", PermissionCategory.CATALOG),
    ("categories.manage", "Manage Categories", "Create and organize categories", PermissionCategory.CATALOG),
    ("inventory.read", "View Inventory", "View stock levels", PermissionCategory.CATALOG),
    ("inventory.manage", "Manage Inventory", "Adjust stock levels", PermissionCategory.CATALOG),
    ("pricing.manage", "Manage Pricing", "Change prices and price lists", PermissionCategory.CATALOG),
    ("media.manage", "Manage Media", "Upload and remove product media", PermissionCategory.CATALOG),
]


# -- ORDERS --

ORDER_PERMISSIONS = [
    ("orders.read", "View Orders", "View orders and order history", PermissionCategory.ORDERS),
    ("orders.write", "Edit Orders", "Create and edit orders", PermissionCategory.ORDERS),
    ("orders.update", "Update Orders", "Change order status and details", PermissionCategory.ORDERS),
    ("orders.cancel", "Cancel Orders", "Cancel open orders", PermissionCategory.ORDERS),
    ("orders.create_manual", "Create Manual Orders", "Create draft orders on behalf of customers", PermissionCategory.ORDERS),
    ("shipments.manage", "Manage Shipments", "Create shipments and print labels", PermissionCategory.ORDERS),
    ("returns.manage", "Manage Returns", "Approve and process returns", PermissionCategory.ORDERS),
]


# -- CUSTOMERS --

CUSTOMER_PERMISSIONS = [
    ("customers.read", "View Customers", "View customer profiles", PermissionCategory.CUSTOMERS),
    ("customers.write", "Edit Customers", "Create and edit customers", PermissionCategory.CUSTOMERS),
    ("customers.update", "Update Customers", "Update customer details", PermissionCategory.CUSTOMERS),
    ("customer_groups.manage", "Manage Customer Groups", "Create and assign customer groups", PermissionCategory.CUSTOMERS),
]


# -- FINANCE --

FINANCE_PERMISSIONS = [
    ("payments.read", "View Payments", "View payments for this store", PermissionCategory.FINANCE),
    ("transactions.read", "View Transactions", "View gateway transactions for this store", PermissionCategory.FINANCE),
    ("refunds.issue", "Issue Refunds", "Refund captured payments", PermissionCategory.FINANCE),
    ("invoices.manage", "Manage Invoices", "Create and send invoices", PermissionCategory.FINANCE),
]


# -- MARKETING --

MARKETING_PERMISSIONS = [
    ("discounts.manage", "Manage Discounts", "Create automatic discounts", PermissionCategory.MARKETING),
    ("coupons.manage", "Manage Coupons", "Create and retire coupon codes", PermissionCategory.MARKETING),
    ("campaigns.manage", "Manage Campaigns", "Run marketing campaigns", PermissionCategory.MARKETING),
]


# -- TEAM --

TEAM_PERMISSIONS = [
    (
        "team.manage",
        "Manage Team",
        "Invite staff, assign roles, and grant store permissions",
        PermissionCategory.TEAM,
    ),
]


STORE_PERMISSION_DEFINITIONS = (
    STORE_SETTINGS_PERMISSIONS
    + CATALOG_PERMISSIONS
    + ORDER_PERMISSIONS
    + CUSTOMER_PERMISSIONS
    + FINANCE_PERMISSIONS
    + MARKETING_PERMISSIONS
    + TEAM_PERMISSIONS
)


# -- PLATFORM --

PLATFORM_PERMISSION_DEFINITIONS = [
    ("merchants.read_all", "View All Merchants", "List every merchant on the platform", PermissionCategory.MERCHANTS),
    ("merchants.read", "View Merchants", "View merchant details", PermissionCategory.MERCHANTS),
    ("merchants.manage", "Manage Merchants", "Edit merchant records", PermissionCategory.MERCHANTS),
    ("merchants.suspend", "Suspend Merchants", "Suspend a merchant and its stores", PermissionCategory.MERCHANTS),
    ("merchants.lock", "Lock Merchants", "Lock merchant accounts", PermissionCategory.MERCHANTS),
    ("merchants.delete", "Delete Merchants", "Delete a merchant", PermissionCategory.MERCHANTS),
    ("merchants.impersonate", "Impersonate Merchants", "Act as a merchant for support", PermissionCategory.MERCHANTS),
    ("stores.read", "View Stores", "View any store", PermissionCategory.MERCHANTS),
    ("orders.read_masked", "View Masked Orders", "View orders with personal data masked", PermissionCategory.MERCHANTS),
    ("customers.read_masked", "View Masked Customers", "View customers with personal data masked", PermissionCategory.MERCHANTS),
    ("payments.read_all", "View All Payments", "View payments across merchants", PermissionCategory.PAYMENTS),
    ("transactions.read_all", "View All Transactions", "View transactions across merchants", PermissionCategory.PAYMENTS),
    ("settlements.read_all", "View Settlements", "View settlement batches", PermissionCategory.PAYMENTS),
    ("refunds.read_all", "View All Refunds", "View refunds across merchants", PermissionCategory.PAYMENTS),
    ("disputes.read_all", "View Disputes", "View chargebacks and disputes", PermissionCategory.PAYMENTS),
    ("refunds.override", "Override Refunds", "Force or block a refund", PermissionCategory.PAYMENTS),
    ("payouts.freeze", "Freeze Payouts", "Hold merchant payouts", PermissionCategory.PAYMENTS),
    ("payouts.release", "Release Payouts", "Release held payouts", PermissionCategory.PAYMENTS),
    ("payments.system_control", "Payment System Control", "Enable or disable payment providers", PermissionCategory.PAYMENTS),
    ("subscriptions.manage", "Manage Subscriptions", "Change merchant subscriptions", PermissionCategory.BILLING),
    ("plans.manage", "Manage Plans", "Create and edit plans", PermissionCategory.BILLING),
    ("billing.adjust", "Adjust Billing", "Issue credits and adjustments", PermissionCategory.BILLING),
    ("platform.settings.manage", "Manage Platform Settings", "Edit global settings", PermissionCategory.PLATFORM),
    ("platform.features.manage", "Manage Features", "Toggle platform features", PermissionCategory.PLATFORM),
    ("security.audit_logs.read_all", "View All Audit Logs", "Read security events platform-wide", PermissionCategory.SECURITY),
    ("security.sessions.revoke", "Revoke Sessions", "Terminate user sessions", PermissionCategory.SECURITY),
    ("security.tokens.revoke", "Revoke Tokens", "Revoke access and refresh tokens", PermissionCategory.SECURITY),
    ("security.policies.manage", "Manage Security Policies", "Edit lockout and password policy", PermissionCategory.SECURITY),
    ("security.accounts.lock", "Lock Accounts", "Lock user accounts", PermissionCategory.SECURITY),
    ("fraud.monitor", "Monitor Fraud", "View fraud signals", PermissionCategory.SECURITY),
    ("risk.actions.execute", "Execute Risk Actions", "Apply risk mitigations", PermissionCategory.SECURITY),
    ("plugins.read", "View Plugins", "View the plugin registry", PermissionCategory.PLUGINS),
    ("plugins.approve", "Approve Plugins", "Approve plugin submissions", PermissionCategory.PLUGINS),
    ("plugins.reject", "Reject Plugins", "Reject plugin submissions", PermissionCategory.PLUGINS),
    ("plugins.suspend", "Suspend Plugins", "Suspend a published plugin", PermissionCategory.PLUGINS),
    ("plugins.delete", "Delete Plugins", "Remove a plugin", PermissionCategory.PLUGINS),
    ("plugins.feature", "Feature Plugins", "Promote plugins in the marketplace", PermissionCategory.PLUGINS),
    ("plugins.config.manage", "Manage Plugin Config", "Edit plugin configuration", PermissionCategory.PLUGINS),
    ("plugins.scopes.manage", "Manage Plugin Scopes", "Edit scopes a plugin may request", PermissionCategory.PLUGINS),
    ("plugins.permissions.manage", "Manage Plugin Permissions", "Edit plugin permission grants", PermissionCategory.PLUGINS),
    ("plugins.tokens.revoke", "Revoke Plugin Tokens", "Revoke plugin access tokens", PermissionCategory.PLUGINS),
    ("api.gateway.manage", "Manage API Gateway", "Configure the API gateway", PermissionCategory.API),
    ("api.routes.manage", "Manage API Routes", "Publish and retire API routes", PermissionCategory.API),
    ("api.rate_limits.manage", "Manage Rate Limits", "Edit API rate limits", PermissionCategory.API),
    ("api.versioning.manage", "Manage API Versions", "Deprecate API versions", PermissionCategory.API),
    ("api_keys.read_meta", "View API Key Metadata", "View API key metadata", PermissionCategory.API),
    ("api_keys.revoke", "Revoke API Keys", "Revoke API keys", PermissionCategory.API),
    ("api_keys.rotate", "Rotate API Keys", "Rotate API keys", PermissionCategory.API),
    ("api_keys.policies.manage", "Manage API Key Policies", "Edit API key policies", PermissionCategory.API),
    ("webhooks.manage", "Manage Webhooks", "Manage platform webhooks", PermissionCategory.API),
    ("integrations.security.manage", "Manage Integration Security", "Edit integration security settings", PermissionCategory.API),
    ("integrations.block", "Block Integrations", "Block an integration", PermissionCategory.API),
]


# Actions an operator UI should gate behind an extra confirmation step
HIGH_RISK_ACTIONS = [
    "refunds.override",
    "payouts.freeze",
    "payouts.release",
    "plugins.approve",
    "api_keys.revoke",
    "merchants.suspend",
    "merchants.delete",
]
