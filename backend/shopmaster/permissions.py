"""
Permission constants and role mappings.

Permission codes are resolved from the user's roles through DEFAULT_ROLE_PERMISSIONS;
there is no per-user override.
"""

# =============================================================================
# PERMISSION CATEGORIES
# =============================================================================

class PermissionCategory:
    """Permission categories for organization."""
    CATALOG = "CATALOG"
    INVENTORY = "INVENTORY"
    ORDERS = "ORDERS"
    REPORTS = "REPORTS"
    USERS = "USERS"


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, name, description, category)
PERMISSION_DEFINITIONS = [
    # CATALOG
    (
        "VIEW_CATALOG_ADMIN",
        "View Catalog (Admin)",
        "See inactive products, purchase prices and margins",
        PermissionCategory.CATALOG
    ),
    (
        "MANAGE_CATALOG",
        "Manage Catalog",
        "Create and update categories and products",
        PermissionCategory.CATALOG
    ),
    (
        "DELETE_CATALOG",
        "Delete Catalog Entries",
        "Archive products and delete categories",
        PermissionCategory.CATALOG
    ),

    # INVENTORY
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View stock levels, the inventory ledger and summary",
        PermissionCategory.INVENTORY
    ),
    (
        "RECEIVE_INVENTORY",
        "Receive Inventory",
        "Record stock-in with purchase price",
        PermissionCategory.INVENTORY
    ),
    (
        "REMOVE_INVENTORY",
        "Remove Inventory",
        "Record stock-out (damage, loss, internal use)",
        PermissionCategory.INVENTORY
    ),
    (
        "ADJUST_INVENTORY",
        "Adjust Inventory",
        "Set stock to a counted quantity",
        PermissionCategory.INVENTORY
    ),

    # ORDERS
    (
        "PLACE_ORDER",
        "Place Order",
        "Create orders and manage own orders",
        PermissionCategory.ORDERS
    ),
    (
        "VIEW_ALL_ORDERS",
        "View All Orders",
        "List and view every customer's orders",
        PermissionCategory.ORDERS
    ),
    (
        "MANAGE_ORDERS",
        "Manage Orders",
        "Move orders through the fulfilment lifecycle",
        PermissionCategory.ORDERS
    ),

    # REPORTS
    (
        "VIEW_DASHBOARD",
        "View Dashboard",
        "Sales statistics and charts",
        PermissionCategory.REPORTS
    ),

    # USERS
    (
        "MANAGE_USERS",
        "Manage Users",
        "Create, update and deactivate user accounts",
        PermissionCategory.USERS
    ),
]

ALL_PERMISSION_CODES = [code for code, _, _, _ in PERMISSION_DEFINITIONS]


# =============================================================================
# DEFAULT ROLE MAPPINGS
# =============================================================================

ADMIN_ONLY_PERMISSIONS = {"ADJUST_INVENTORY", "DELETE_CATALOG", "MANAGE_USERS"}

DEFAULT_ROLE_PERMISSIONS = {
    "admin": list(ALL_PERMISSION_CODES),
    "staff": [code for code in ALL_PERMISSION_CODES if code not in ADMIN_ONLY_PERMISSIONS],
    "customer": ["PLACE_ORDER"],
}

ROLE_DESCRIPTIONS = {
    "admin": "Full system access",
    "staff": "Catalog, inventory and order operations",
    "customer": "Storefront customer",
}
