import pytest

from hire_ledger.error import AuthorizationError
from hire_ledger.schemas import Role
from hire_ledger.services.policy import Action, authorize, creatable_roles, ensure_allowed


def test_create_user_by_role():
    assert authorize(Role.admin, Action.CREATE_USER, target_role=Role.admin)
    assert authorize(Role.admin, Action.CREATE_USER, target_role=Role.manager)
    assert authorize(Role.manager, Action.CREATE_USER, target_role=Role.staff)
    assert not authorize(Role.manager, Action.CREATE_USER, target_role=Role.admin)
    assert not authorize(Role.manager, Action.CREATE_USER, target_role=Role.manager)
    assert not authorize(Role.staff, Action.CREATE_USER, target_role=Role.staff)
    assert not authorize(Role.admin, Action.CREATE_USER)


def test_creatable_roles():
    assert creatable_roles("admin") == [Role.admin, Role.manager, Role.staff]
    assert creatable_roles("manager") == [Role.staff]
    assert creatable_roles("staff") == []


def test_user_admin_actions():
    assert authorize("admin", Action.EDIT_USER)
    assert not authorize("manager", Action.EDIT_USER)

    assert authorize("admin", Action.DELETE_USER)
    assert not authorize("admin", Action.DELETE_USER, is_self=True)
    assert not authorize("manager", Action.DELETE_USER)

    assert authorize("admin", Action.CHANGE_USER_PASSWORD)
    assert authorize("staff", Action.CHANGE_USER_PASSWORD, is_self=True)
    assert not authorize("manager", Action.CHANGE_USER_PASSWORD)

    assert authorize("manager", Action.LIST_USERS)
    assert not authorize("staff", Action.LIST_USERS)


@pytest.mark.parametrize("action", [Action.MANAGE_CATALOG, Action.DELETE_ORDER, Action.MANAGE_IMAGES])
def test_admin_and_manager_only(action):
    assert authorize("admin", action)
    assert authorize("manager", action)
    assert not authorize("staff", action)


@pytest.mark.parametrize(
    "action",
    [
        Action.VIEW_OWN_PROFILE,
        Action.CHANGE_OWN_PASSWORD,
        Action.CREATE_ORDER,
        Action.EDIT_ORDER,
        Action.ADD_LINE,
        Action.CHECK_OUT,
        Action.CHECK_IN,
        Action.VIEW_DASHBOARD,
    ],
)
def test_any_role(action):
    for role in Role:
        assert authorize(role, action)


def test_ensure_allowed_raises():
    ensure_allowed("manager", Action.CREATE_USER, target_role="staff")
    with pytest.raises(AuthorizationError):
        ensure_allowed("manager", Action.CREATE_USER, target_role="admin")
