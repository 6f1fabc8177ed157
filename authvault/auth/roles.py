"""
Account roles and their capabilities.

Each role maps to a fixed capability set. Admin customers get every
capability known to the system.
"""

from enum import Enum
from typing import Dict, FrozenSet


class Role(Enum):
    """Kinds of marketplace accounts."""
    CUSTOMER = "customer"
    FARMER = "farmer"


_ROLE_PERMISSIONS: Dict[Role, FrozenSet[str]] = {
    Role.CUSTOMER: frozenset({
        'place_order',
        'view_products',
        'view_profile',
        'update_profile',
        'view_orders',
        'cancel_order',
    }),
    Role.FARMER: frozenset({
        'add_product',
        'edit_product',
        'delete_product',
        'view_products',
        'view_profile',
        'update_profile',
        'view_orders',
        'update_order_status',
        'view_sales_reports',
    }),
}

# Capabilities reserved for administrators
ADMIN_PERMISSIONS: FrozenSet[str] = frozenset({
    'manage_users',
    'manage_products',
    'manage_farmers',
    'view_reports',
    'view_all_reports',
    'system_admin',
})

ALL_PERMISSIONS: FrozenSet[str] = frozenset().union(
    ADMIN_PERMISSIONS, *_ROLE_PERMISSIONS.values()
)


def permissions_for(role: Role, is_admin: bool = False) -> FrozenSet[str]:
    """
    Capabilities granted to an account.

    Args:
        role: Account role
        is_admin: Admin flag (only honoured for customers)

    Returns:
        Frozen set of capability names
    """
    if role is Role.CUSTOMER and is_admin:
        return ALL_PERMISSIONS
    return _ROLE_PERMISSIONS[role]
