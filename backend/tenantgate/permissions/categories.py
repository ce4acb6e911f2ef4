# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    STORE = "STORE"
    CATALOG = "CATALOG"
    ORDERS = "ORDERS"
    CUSTOMERS = "CUSTOMERS"
    FINANCE = "FINANCE"
    MARKETING = "MARKETING"
    TEAM = "TEAM"

    # Platform (operator) categories
    MERCHANTS = "MERCHANTS"
    PAYMENTS = "PAYMENTS"
    BILLING = "BILLING"
    PLATFORM = "PLATFORM"
    SECURITY = "SECURITY"
    PLUGINS = "PLUGINS"
    API = "API"
