# Overview: Role definitions and the operation -> allowed roles map.
# Each entry is: operation code -> roles permitted to perform it.

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    CASHIER = "cashier"


ROLES = tuple(r.value for r in Role)

ALL_ROLES = frozenset(Role)
CATALOG_EDITORS = frozenset({Role.ADMIN, Role.MANAGER})
ADMIN_ONLY = frozenset({Role.ADMIN})


# -- SALES / RETURNS / STOCK --

OPERATION_ROLES: dict[str, frozenset[Role]] = {
    "CREATE_SALE": ALL_ROLES,
    "VIEW_SALES": ALL_ROLES,
    "CREATE_RETURN": ALL_ROLES,
    "VIEW_RETURNS": ALL_ROLES,
    "ADJUST_STOCK": ALL_ROLES,
    "VIEW_INVENTORY": ALL_ROLES,

    # -- CATALOG --
    "VIEW_PRODUCTS": ALL_ROLES,
    "CREATE_PRODUCT": CATALOG_EDITORS,
    "UPDATE_PRODUCT": CATALOG_EDITORS,
    "DELETE_PRODUCT": ADMIN_ONLY,
    "VIEW_CATALOG": ALL_ROLES,
    "MANAGE_CATALOG": CATALOG_EDITORS,
    "DELETE_CATALOG": ADMIN_ONLY,

    # -- CUSTOMERS --
    "VIEW_CUSTOMERS": ALL_ROLES,
    "MANAGE_CUSTOMERS": ALL_ROLES,
    "DELETE_CUSTOMER": ADMIN_ONLY,

    # -- PURCHASING --
    "VIEW_PURCHASE_ORDERS": CATALOG_EDITORS,
    "MANAGE_PURCHASE_ORDERS": CATALOG_EDITORS,
    "RECEIVE_PURCHASE_ORDER": CATALOG_EDITORS,

    # -- REPORTS --
    "VIEW_REPORTS": ALL_ROLES,
}


def is_allowed(role: str, operation: str) -> bool:
    """Unknown operations and unknown roles are denied."""
    allowed = OPERATION_ROLES.get(operation)
    if not allowed:
        return False
    try:
        return Role(role) in allowed
    except ValueError:
        return False
