"""
State Transition Policy

Lifecycle graphs for sales, commissions and marketing packages, and the
capability table that maps each role to the actions it may perform.
"""

from enum import Enum

from .errors import PermissionDenied, PolicyViolation
from .models import AuthContext, CommissionStatus, PackageStatus, Role, SaleStatus


class Capability(str, Enum):
    CREATE_SALE = "create_sale"
    CREATE_SALE_FOR_OTHERS = "create_sale_for_others"
    UPDATE_OWN_SALE = "update_own_sale"
    UPDATE_ANY_SALE = "update_any_sale"
    UPDATE_SALE_STATUS = "update_sale_status"
    DELETE_SALE = "delete_sale"
    VIEW_ANY_SALE = "view_any_sale"
    VIEW_ANY_COMMISSION = "view_any_commission"
    UPDATE_COMMISSION_STATUS = "update_commission_status"
    BATCH_UPDATE_COMMISSIONS = "batch_update_commissions"
    MANAGE_PACKAGES = "manage_packages"
    APPROVE_PACKAGE = "approve_package"
    DELETE_PACKAGE = "delete_package"
    VIEW_REPORTS = "view_reports"
    LIST_USERS = "list_users"
    MANAGE_USERS = "manage_users"


_MANAGER_CAPABILITIES = frozenset({
    Capability.CREATE_SALE,
    Capability.CREATE_SALE_FOR_OTHERS,
    Capability.UPDATE_OWN_SALE,
    Capability.UPDATE_ANY_SALE,
    Capability.UPDATE_SALE_STATUS,
    Capability.VIEW_ANY_SALE,
    Capability.VIEW_ANY_COMMISSION,
    Capability.UPDATE_COMMISSION_STATUS,
    Capability.BATCH_UPDATE_COMMISSIONS,
    Capability.MANAGE_PACKAGES,
    Capability.APPROVE_PACKAGE,
    Capability.VIEW_REPORTS,
    Capability.LIST_USERS,
})

CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: frozenset(Capability),
    Role.MANAGER: _MANAGER_CAPABILITIES,
    Role.FINANCE: frozenset({
        Capability.VIEW_ANY_SALE,
        Capability.VIEW_ANY_COMMISSION,
        Capability.UPDATE_COMMISSION_STATUS,
        Capability.BATCH_UPDATE_COMMISSIONS,
        Capability.APPROVE_PACKAGE,
        Capability.VIEW_REPORTS,
    }),
    Role.SALESPERSON: frozenset({
        Capability.CREATE_SALE,
        Capability.UPDATE_OWN_SALE,
        Capability.MANAGE_PACKAGES,
    }),
}


def can(role: Role, capability: Capability) -> bool:
    return capability in CAPABILITIES[Role.from_value(role)]


def require(auth: AuthContext, capability: Capability) -> None:
    """Raise PermissionDenied unless the caller's role grants capability."""
    if not can(auth.role, capability):
        raise PermissionDenied(f"Role {auth.role.value} is not allowed to {capability.value}")


FINANCIAL_FIELDS = (
    "valor_bruto",
    "desconto",
    "comissao_percentual",
    "valor_liquido",
    "comissao_valor",
    "imposto_retido",
    "comissao_liquida",
)
FINANCIAL_INPUT_FIELDS = ("valor_bruto", "desconto", "comissao_percentual")
DESCRIPTIVE_FIELDS = ("cliente_nome", "cliente_email", "cliente_telefone", "data_venda", "observacoes")


class StateTransitionPolicy:
    """Reachability graphs and edit rules for every lifecycle."""

    SALE_TRANSITIONS: dict[SaleStatus, frozenset[SaleStatus]] = {
        SaleStatus.PENDING: frozenset({SaleStatus.APPROVED, SaleStatus.CANCELLED}),
        SaleStatus.APPROVED: frozenset({SaleStatus.PAID, SaleStatus.CANCELLED}),
        SaleStatus.PAID: frozenset(),
        SaleStatus.CANCELLED: frozenset(),
    }

    COMMISSION_TRANSITIONS: dict[CommissionStatus, frozenset[CommissionStatus]] = {
        CommissionStatus.PENDING: frozenset({CommissionStatus.PAID, CommissionStatus.CANCELLED}),
        CommissionStatus.PAID: frozenset(),
        CommissionStatus.CANCELLED: frozenset(),
    }

    PACKAGE_TRANSITIONS: dict[PackageStatus, frozenset[PackageStatus]] = {
        PackageStatus.PENDING: frozenset({PackageStatus.APPROVED}),
        PackageStatus.APPROVED: frozenset(),
    }

    DELETABLE_SALE_STATUSES = frozenset({SaleStatus.PENDING, SaleStatus.CANCELLED})

    def can_transition_sale(self, current: SaleStatus, target: SaleStatus) -> bool:
        return current == target or target in self.SALE_TRANSITIONS[current]

    def check_sale_transition(self, current: SaleStatus, target: SaleStatus) -> None:
        """Reject any sale status change outside the lifecycle graph, whatever the role."""
        if not self.can_transition_sale(current, target):
            raise PolicyViolation(f"Sale cannot move from {current.value} to {target.value}")

    def edit_violations(self, current: SaleStatus, fields: list[str]) -> list[str]:
        """List one violation per field that may not be edited in the current status."""
        if current == SaleStatus.PENDING:
            return []
        violations = []
        for name in fields:
            kind = "Financial field" if name in FINANCIAL_FIELDS else "Field"
            violations.append(
                f"{kind} {name} can only be edited while the sale is "
                f"{SaleStatus.PENDING.value} (current: {current.value})"
            )
        return violations

    def check_sale_edit(self, current: SaleStatus, fields: list[str]) -> None:
        violations = self.edit_violations(current, fields)
        if violations:
            raise PolicyViolation(violations)

    def check_sale_deletion(self, current: SaleStatus) -> None:
        if current not in self.DELETABLE_SALE_STATUSES:
            raise PolicyViolation(
                f"Only {SaleStatus.PENDING.value} or {SaleStatus.CANCELLED.value} sales can be deleted "
                f"(current: {current.value})"
            )

    def can_transition_commission(self, current: CommissionStatus, target: CommissionStatus) -> bool:
        return current == target or target in self.COMMISSION_TRANSITIONS[current]

    def check_commission_transition(self, current: CommissionStatus, target: CommissionStatus) -> None:
        if not self.can_transition_commission(current, target):
            raise PolicyViolation(f"Commission cannot move from {current.value} to {target.value}")

    def check_package_transition(self, current: PackageStatus, target: PackageStatus) -> None:
        if target not in self.PACKAGE_TRANSITIONS[current]:
            raise PolicyViolation(f"Package cannot move from {current.value} to {target.value}")
