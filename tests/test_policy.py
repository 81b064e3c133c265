"""
Unit Tests for State Transition Policy and role capabilities
"""

import pytest

from commission_engine.errors import PermissionDenied, PolicyViolation, ValidationError
from commission_engine.models import AuthContext, CommissionStatus, PackageStatus, Role, SaleStatus
from commission_engine.policy import Capability, StateTransitionPolicy, can, require


class TestSaleTransitions:
    """Test the sale lifecycle graph."""

    @pytest.fixture
    def policy(self):
        return StateTransitionPolicy()

    @pytest.mark.parametrize("current, target", [
        (SaleStatus.PENDING, SaleStatus.APPROVED),
        (SaleStatus.PENDING, SaleStatus.CANCELLED),
        (SaleStatus.APPROVED, SaleStatus.PAID),
        (SaleStatus.APPROVED, SaleStatus.CANCELLED),
    ])
    def test_allowed_transitions(self, policy, current, target):
        assert policy.can_transition_sale(current, target)
        policy.check_sale_transition(current, target)

    @pytest.mark.parametrize("current, target", [
        (SaleStatus.PENDING, SaleStatus.PAID),
        (SaleStatus.APPROVED, SaleStatus.PENDING),
        (SaleStatus.PAID, SaleStatus.APPROVED),
        (SaleStatus.PAID, SaleStatus.CANCELLED),
        (SaleStatus.CANCELLED, SaleStatus.PENDING),
        (SaleStatus.CANCELLED, SaleStatus.APPROVED),
    ])
    def test_forbidden_transitions(self, policy, current, target):
        assert not policy.can_transition_sale(current, target)
        with pytest.raises(PolicyViolation):
            policy.check_sale_transition(current, target)

    def test_same_status_is_not_a_transition(self, policy):
        assert policy.can_transition_sale(SaleStatus.PAID, SaleStatus.PAID)

    def test_terminal_statuses_have_no_successors(self, policy):
        assert policy.SALE_TRANSITIONS[SaleStatus.PAID] == frozenset()
        assert policy.SALE_TRANSITIONS[SaleStatus.CANCELLED] == frozenset()


class TestSaleEdits:
    @pytest.fixture
    def policy(self):
        return StateTransitionPolicy()

    def test_pending_sale_accepts_any_edit(self, policy):
        assert policy.edit_violations(SaleStatus.PENDING, ["valor_bruto", "cliente_nome"]) == []

    @pytest.mark.parametrize("status", [SaleStatus.APPROVED, SaleStatus.PAID, SaleStatus.CANCELLED])
    def test_financial_edit_rejected_outside_pending(self, policy, status):
        with pytest.raises(PolicyViolation) as exc:
            policy.check_sale_edit(status, ["valor_bruto"])
        assert exc.value.violations[0].startswith("Financial field valor_bruto")

    def test_one_violation_per_field(self, policy):
        violations = policy.edit_violations(SaleStatus.APPROVED, ["desconto", "observacoes"])
        assert len(violations) == 2
        assert violations[1].startswith("Field observacoes")

    def test_deletion_only_for_pending_or_cancelled(self, policy):
        policy.check_sale_deletion(SaleStatus.PENDING)
        policy.check_sale_deletion(SaleStatus.CANCELLED)
        with pytest.raises(PolicyViolation):
            policy.check_sale_deletion(SaleStatus.APPROVED)
        with pytest.raises(PolicyViolation):
            policy.check_sale_deletion(SaleStatus.PAID)


class TestCommissionAndPackageTransitions:
    @pytest.fixture
    def policy(self):
        return StateTransitionPolicy()

    def test_pending_commission_can_be_paid_or_cancelled(self, policy):
        assert policy.can_transition_commission(CommissionStatus.PENDING, CommissionStatus.PAID)
        assert policy.can_transition_commission(CommissionStatus.PENDING, CommissionStatus.CANCELLED)

    def test_paid_commission_is_terminal(self, policy):
        with pytest.raises(PolicyViolation):
            policy.check_commission_transition(CommissionStatus.PAID, CommissionStatus.PENDING)
        with pytest.raises(PolicyViolation):
            policy.check_commission_transition(CommissionStatus.PAID, CommissionStatus.CANCELLED)

    def test_package_approval_once(self, policy):
        policy.check_package_transition(PackageStatus.PENDING, PackageStatus.APPROVED)
        with pytest.raises(PolicyViolation):
            policy.check_package_transition(PackageStatus.APPROVED, PackageStatus.APPROVED)


class TestCapabilities:
    """Test the role to capability table."""

    def test_admin_has_every_capability(self):
        assert all(can(Role.ADMIN, capability) for capability in Capability)

    @pytest.mark.parametrize("capability", [Capability.DELETE_SALE, Capability.DELETE_PACKAGE, Capability.MANAGE_USERS])
    def test_manager_cannot_delete_or_manage_users(self, capability):
        assert not can(Role.MANAGER, capability)

    def test_manager_can_change_sale_status(self):
        assert can(Role.MANAGER, Capability.UPDATE_SALE_STATUS)

    def test_salesperson_limited_to_own_work(self):
        assert can(Role.SALESPERSON, Capability.CREATE_SALE)
        assert can(Role.SALESPERSON, Capability.UPDATE_OWN_SALE)
        assert not can(Role.SALESPERSON, Capability.UPDATE_ANY_SALE)
        assert not can(Role.SALESPERSON, Capability.UPDATE_SALE_STATUS)
        assert not can(Role.SALESPERSON, Capability.VIEW_REPORTS)

    def test_finance_handles_payouts_only(self):
        assert can(Role.FINANCE, Capability.BATCH_UPDATE_COMMISSIONS)
        assert not can(Role.FINANCE, Capability.CREATE_SALE)

    def test_require_raises_permission_denied(self):
        auth = AuthContext(user_id="ana", role=Role.SALESPERSON)
        with pytest.raises(PermissionDenied):
            require(auth, Capability.DELETE_SALE)

    def test_can_accepts_role_aliases(self):
        assert can("salesperson", Capability.CREATE_SALE)


class TestRole:
    @pytest.mark.parametrize("raw, expected", [
        ("admin", Role.ADMIN),
        ("GERENTE", Role.MANAGER),
        ("vendedora", Role.SALESPERSON),
        ("finance", Role.FINANCE),
    ])
    def test_from_value(self, raw, expected):
        assert Role.from_value(raw) == expected

    def test_unknown_role(self):
        with pytest.raises(ValidationError):
            Role.from_value("intern")
