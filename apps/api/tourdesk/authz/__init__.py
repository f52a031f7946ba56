from tourdesk.authz.models import Permission, PolicyStoreState, RolePermission

__all__ = [
    "Permission",
    "PolicyStoreState",
    "RolePermission",
]
