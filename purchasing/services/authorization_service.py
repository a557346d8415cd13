"""
Authorization oracle: static role → permission table.

  purchase_order:  read                         every role
                   create/update/submit         every role but guest
                   assistant_review             assistant_manager
                   manager_review               manager
                   complete/record_receipt      manager, assistant_manager
  change_request:  create                       employee, assistant_manager
                   resolve                      manager
  vendor/item:     write                        manager, assistant_manager
  audit_log:       read                         manager
"""

from typing import Union

from purchasing.models.user import UserRole

MANAGER = UserRole.MANAGER.value
ASSISTANT = UserRole.ASSISTANT_MANAGER.value
EMPLOYEE = UserRole.EMPLOYEE.value
GUEST = UserRole.GUEST.value

STAFF = frozenset({MANAGER, ASSISTANT, EMPLOYEE})
EVERYONE = STAFF | {GUEST}
REVIEWERS = frozenset({MANAGER, ASSISTANT})

PERMISSIONS: dict[tuple[str, str], frozenset] = {
    ("purchase_order", "read"): EVERYONE,
    ("purchase_order", "create"): STAFF,
    ("purchase_order", "update"): STAFF,
    ("purchase_order", "submit"): STAFF,
    ("purchase_order", "assistant_review"): frozenset({ASSISTANT}),
    ("purchase_order", "manager_review"): frozenset({MANAGER}),
    ("purchase_order", "complete"): REVIEWERS,
    ("purchase_order", "record_receipt"): REVIEWERS,
    ("change_request", "read"): STAFF,
    ("change_request", "create"): frozenset({EMPLOYEE, ASSISTANT}),
    ("change_request", "resolve"): frozenset({MANAGER}),
    ("vendor", "read"): EVERYONE,
    ("vendor", "write"): REVIEWERS,
    ("item", "read"): EVERYONE,
    ("item", "write"): REVIEWERS,
    ("audit_log", "read"): frozenset({MANAGER}),
}


def _role_value(role: Union[str, UserRole]) -> str:
    return role.value if isinstance(role, UserRole) else role


class RoleAuthorizationOracle:
    def __init__(self, permissions: dict = PERMISSIONS):
        self.permissions = permissions

    def can(self, actor_role: Union[str, UserRole], action: str, resource_type: str) -> bool:
        allowed = self.permissions.get((resource_type, action))
        if allowed is None:
            return False
        return _role_value(actor_role) in allowed

    def roles_for(self, action: str, resource_type: str) -> list[str]:
        return sorted(self.permissions.get((resource_type, action), ()))
