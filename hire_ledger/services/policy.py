"""
角色权限表：所有需要判断角色的地方都走 authorize / ensure_allowed，路由里不再手写 role 判断。
"""
import logging
from enum import Enum
from typing import Optional

from hire_ledger.error import AuthorizationError
from hire_ledger.schemas import Role

logger = logging.getLogger(__name__)


class Action(str, Enum):
    VIEW_OWN_PROFILE = "view_own_profile"
    CHANGE_OWN_PASSWORD = "change_own_password"

    CREATE_USER = "create_user"
    EDIT_USER = "edit_user"
    DELETE_USER = "delete_user"
    CHANGE_USER_PASSWORD = "change_user_password"
    LIST_USERS = "list_users"

    VIEW_CATALOG = "view_catalog"
    MANAGE_CATALOG = "manage_catalog"

    VIEW_ORDER = "view_order"
    CREATE_ORDER = "create_order"
    EDIT_ORDER = "edit_order"
    ADD_LINE = "add_line"
    CHECK_OUT = "check_out"
    CHECK_IN = "check_in"
    DELETE_ORDER = "delete_order"

    MANAGE_IMAGES = "manage_images"
    VIEW_DASHBOARD = "view_dashboard"


ANY_ROLE = frozenset(Role)
ADMIN_MANAGER = frozenset({Role.admin, Role.manager})
ADMIN_ONLY = frozenset({Role.admin})

# 只看角色就能决定的动作
ROLE_TABLE: dict[Action, frozenset[Role]] = {
    Action.VIEW_OWN_PROFILE: ANY_ROLE,
    Action.CHANGE_OWN_PASSWORD: ANY_ROLE,
    Action.EDIT_USER: ADMIN_ONLY,
    Action.LIST_USERS: ADMIN_MANAGER,
    Action.VIEW_CATALOG: ANY_ROLE,
    Action.MANAGE_CATALOG: ADMIN_MANAGER,
    Action.VIEW_ORDER: ANY_ROLE,
    Action.CREATE_ORDER: ANY_ROLE,
    Action.EDIT_ORDER: ANY_ROLE,
    Action.ADD_LINE: ANY_ROLE,
    Action.CHECK_OUT: ANY_ROLE,
    Action.CHECK_IN: ANY_ROLE,
    Action.DELETE_ORDER: ADMIN_MANAGER,
    Action.MANAGE_IMAGES: ADMIN_MANAGER,
    Action.VIEW_DASHBOARD: ANY_ROLE,
}


def creatable_roles(role: Role | str) -> list[Role]:
    role = Role(role)
    if role == Role.admin:
        return [Role.admin, Role.manager, Role.staff]
    if role == Role.manager:
        return [Role.staff]
    return []


def authorize(
    role: Role | str,
    action: Action,
    target_role: Optional[Role | str] = None,
    is_self: bool = False,
) -> bool:
    role = Role(role)

    if action == Action.CREATE_USER:
        if target_role is None:
            return False
        return Role(target_role) in creatable_roles(role)

    if action == Action.DELETE_USER:
        return role == Role.admin and not is_self

    if action == Action.CHANGE_USER_PASSWORD:
        return role == Role.admin or is_self

    return role in ROLE_TABLE[action]


def ensure_allowed(
    role: Role | str,
    action: Action,
    target_role: Optional[Role | str] = None,
    is_self: bool = False,
) -> None:
    if not authorize(role, action, target_role=target_role, is_self=is_self):
        logger.warning("denied: role=%s action=%s target_role=%s", role, action.value, target_role)
        raise AuthorizationError(f"Role '{Role(role).value}' may not perform {action.value}")
