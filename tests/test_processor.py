"""
Integration Tests for the Sales Processor

Scenario tests that run the full pipeline (permission, policy, validation,
calculation, persistence, audit) against the in-memory store.
"""

from datetime import date
from decimal import Decimal

import pytest

from commission_engine import SalesProcessor, Settings
from commission_engine.audit import InMemoryAuditSink
from commission_engine.errors import (
    ConstraintViolation,
    NotFound,
    PermissionDenied,
    PolicyViolation,
    StoreError,
    ValidationError,
)
from commission_engine.models import AuthContext, CommissionStatus, PackageStatus, Role, SaleStatus
from commission_engine.store import COMMISSIONS, SALES, InMemoryStore

ADMIN = AuthContext("root", Role.ADMIN)
MANAGER = AuthContext("gina", Role.MANAGER)
FINANCE = AuthContext("fin", Role.FINANCE)
ANA = AuthContext("ana", Role.SALESPERSON)
BIA = AuthContext("bia", Role.SALESPERSON)


def sale_input(**overrides):
    data = {
        "cliente_nome": "Maria Souza",
        "cliente_email": "maria@example.com",
        "valor_bruto": 1000,
        "desconto": 100,
        "comissao_percentual": 10,
        "data_venda": "2025-06-01",
    }
    data.update(overrides)
    return data


def package_input(**overrides):
    data = {
        "pedido": "123456",
        "cliente": "Loja Centro",
        "pacote": "prata",
        "mes_referencia": "2025-06",
    }
    data.update(overrides)
    return data


def commission_for(processor, sale_id):
    (commission,) = [c for c in processor.list_commissions(ADMIN) if c.sale_id == sale_id]
    return commission


@pytest.fixture
def audit():
    return InMemoryAuditSink()


@pytest.fixture
def processor(audit):
    return SalesProcessor(InMemoryStore(), audit=audit, settings=Settings(), today=lambda: date(2025, 6, 15))


class TestCreateSale:
    """Test sale creation."""

    def test_creates_sale_and_commission(self, processor, audit):
        sale = processor.create_sale(ANA, sale_input())

        assert sale.status == SaleStatus.PENDING
        assert sale.salesperson_id == "ana"
        assert sale.net_value == Decimal("900.00")
        assert sale.commission_value == Decimal("90.00")
        # 90 x 0.1115 = 10.035
        assert sale.tax_retained == Decimal("10.04")
        assert sale.net_commission == Decimal("79.97")

        commission = commission_for(processor, sale.id)
        assert commission.salesperson_id == "ana"
        assert commission.status == CommissionStatus.PENDING
        assert commission.commission_value == sale.commission_value
        assert commission.tax_retained == sale.tax_retained
        assert commission.net_value == sale.net_commission

        assert [e.action for e in audit.for_entity("VENDA", sale.id)] == ["CREATE"]

    def test_salesperson_cannot_sell_for_others(self, processor):
        sale = processor.create_sale(ANA, sale_input(vendedor_id="bia"))
        assert sale.salesperson_id == "ana"

    def test_manager_creates_for_named_salesperson(self, processor):
        sale = processor.create_sale(MANAGER, sale_input(vendedor_id="bia"))
        assert sale.salesperson_id == "bia"

    def test_status_in_payload_is_ignored(self, processor):
        sale = processor.create_sale(ADMIN, sale_input(vendedor_id="ana", status="paga"))
        assert sale.status == SaleStatus.PENDING

    def test_manager_must_name_salesperson(self, processor):
        with pytest.raises(ValidationError):
            processor.create_sale(MANAGER, sale_input())

    def test_finance_cannot_create(self, processor):
        with pytest.raises(PermissionDenied):
            processor.create_sale(FINANCE, sale_input(vendedor_id="ana"))

    def test_invalid_input_stores_nothing(self, processor):
        with pytest.raises(ValidationError) as exc:
            processor.create_sale(ANA, sale_input(cliente_nome="", desconto=1000))

        assert len(exc.value.errors) == 2
        assert processor.store.find_where(SALES) == []
        assert processor.store.find_where(COMMISSIONS) == []

    def test_future_sale_date_rejected(self, processor):
        with pytest.raises(ValidationError):
            processor.create_sale(ANA, sale_input(data_venda="2025-06-16"))

    def test_commission_failure_rolls_back_sale(self, audit):
        class FailingCommissionStore(InMemoryStore):
            def insert(self, collection, record):
                if collection == COMMISSIONS:
                    raise ConstraintViolation("commission table unavailable")
                return super().insert(collection, record)

        store = FailingCommissionStore()
        processor = SalesProcessor(store, audit=audit, today=lambda: date(2025, 6, 15))

        with pytest.raises(ConstraintViolation):
            processor.create_sale(ANA, sale_input())

        assert store.find_where(SALES) == []
        assert audit.entries == []


class TestUpdateSale:
    """Test edits and status changes."""

    @pytest.fixture
    def sale(self, processor):
        return processor.create_sale(ANA, sale_input())

    def test_financial_edit_recalculates_and_syncs_commission(self, processor, sale):
        updated = processor.update_sale(ANA, sale.id, {"valor_bruto": 2000})

        assert updated.gross_value == Decimal("2000")
        assert updated.net_value == Decimal("1900.00")
        assert updated.commission_value == Decimal("190.00")
        assert updated.tax_retained == Decimal("21.19")
        assert updated.net_commission == Decimal("168.82")

        commission = commission_for(processor, sale.id)
        assert commission.commission_value == Decimal("190.00")
        assert commission.tax_retained == Decimal("21.19")
        assert commission.net_value == Decimal("168.82")

    def test_sync_keeps_commission_status(self, processor, sale):
        commission = commission_for(processor, sale.id)
        processor.update_commission(FINANCE, commission.id, {"status": "paga"})

        processor.update_sale(ANA, sale.id, {"comissao_percentual": 20})

        commission = commission_for(processor, sale.id)
        assert commission.status == CommissionStatus.PAID
        assert commission.commission_value == Decimal("180.00")

    def test_descriptive_edit_does_not_touch_financials(self, processor, sale):
        updated = processor.update_sale(ANA, sale.id, {"observacoes": "Entrega em julho"})
        assert updated.notes == "Entrega em julho"
        assert updated.commission_value == sale.commission_value

    def test_manager_approves(self, processor, sale, audit):
        updated = processor.update_sale(MANAGER, sale.id, {"status": "aprovada"})

        assert updated.status == SaleStatus.APPROVED
        entry = audit.for_entity("VENDA", sale.id)[-1]
        assert entry.action == "STATUS_CHANGE"
        assert [(d.field, d.old, d.new) for d in entry.changes] == [("status", "pendente", "aprovada")]

    def test_approved_sale_is_frozen(self, processor, sale):
        processor.update_sale(MANAGER, sale.id, {"status": "aprovada"})

        with pytest.raises(PolicyViolation) as exc:
            processor.update_sale(MANAGER, sale.id, {"valor_bruto": 5000, "status": "pendente"})

        assert len(exc.value.violations) == 2
        assert processor.get_sale(MANAGER, sale.id).gross_value == Decimal("1000")

    def test_descriptive_edit_rejected_after_approval(self, processor, sale):
        processor.update_sale(MANAGER, sale.id, {"status": "aprovada"})
        with pytest.raises(PolicyViolation):
            processor.update_sale(MANAGER, sale.id, {"cliente_nome": "Outro Nome"})

    def test_full_lifecycle(self, processor, sale):
        processor.update_sale(MANAGER, sale.id, {"status": "aprovada"})
        paid = processor.update_sale(ADMIN, sale.id, {"status": "paga"})
        assert paid.status == SaleStatus.PAID

        with pytest.raises(PolicyViolation):
            processor.update_sale(ADMIN, sale.id, {"status": "cancelada"})

    def test_pending_cannot_jump_to_paid(self, processor, sale):
        with pytest.raises(PolicyViolation):
            processor.update_sale(ADMIN, sale.id, {"status": "paga"})

    def test_salesperson_cannot_change_status(self, processor, sale):
        with pytest.raises(PermissionDenied):
            processor.update_sale(ANA, sale.id, {"status": "aprovada"})

    def test_same_status_is_a_no_op(self, processor, sale, audit):
        before = len(audit.entries)
        result = processor.update_sale(ANA, sale.id, {"status": "pendente"})
        assert result.status == SaleStatus.PENDING
        assert len(audit.entries) == before

    def test_derived_fields_cannot_be_set(self, processor, sale):
        with pytest.raises(ValidationError):
            processor.update_sale(ANA, sale.id, {"comissao_valor": 5})

    def test_merged_record_is_validated(self, processor, sale):
        with pytest.raises(ValidationError):
            processor.update_sale(ANA, sale.id, {"desconto": 1000})

    @pytest.mark.parametrize("blank", [None, ""])
    def test_cleared_discount_recalculates_as_zero(self, processor, sale, blank):
        processor.update_sale(ANA, sale.id, {"desconto": 500})

        updated = processor.update_sale(ANA, sale.id, {"valor_bruto": 400, "desconto": blank})

        assert updated.discount == Decimal("0")
        assert updated.net_value == Decimal("400.00")
        assert updated.commission_value == Decimal("40.00")
        assert commission_for(processor, sale.id).commission_value == Decimal("40.00")

    def test_oversized_gross_rejected_on_create(self, processor):
        with pytest.raises(ValidationError):
            processor.create_sale(ANA, sale_input(valor_bruto="1e30"))
        assert processor.store.find_where(SALES) == []

    def test_unknown_status(self, processor, sale):
        with pytest.raises(ValidationError):
            processor.update_sale(MANAGER, sale.id, {"status": "arquivada"})

    def test_other_salesperson_sees_not_found(self, processor, sale):
        with pytest.raises(NotFound):
            processor.update_sale(BIA, sale.id, {"observacoes": "x"})
        with pytest.raises(NotFound):
            processor.get_sale(BIA, sale.id)

    def test_commission_sync_failure_restores_sale(self, audit):
        class FailingSyncStore(InMemoryStore):
            def update_where(self, collection, filters, changes):
                if collection == COMMISSIONS:
                    raise StoreError("commission table unavailable")
                return super().update_where(collection, filters, changes)

        processor = SalesProcessor(FailingSyncStore(), audit=audit, today=lambda: date(2025, 6, 15))
        sale = processor.create_sale(ANA, sale_input())

        with pytest.raises(StoreError):
            processor.update_sale(ANA, sale.id, {"valor_bruto": 2000})

        restored = processor.get_sale(ANA, sale.id)
        assert restored.gross_value == Decimal("1000")
        assert restored.commission_value == Decimal("90.00")


class TestDeleteSale:
    @pytest.fixture
    def sale(self, processor):
        return processor.create_sale(ANA, sale_input())

    def test_admin_deletes_sale_and_commission(self, processor, sale):
        processor.delete_sale(ADMIN, sale.id)

        with pytest.raises(NotFound):
            processor.get_sale(ADMIN, sale.id)
        assert processor.list_commissions(ADMIN) == []

    def test_cancelled_sale_can_be_deleted(self, processor, sale):
        processor.update_sale(MANAGER, sale.id, {"status": "cancelada"})
        processor.delete_sale(ADMIN, sale.id)
        assert processor.list_sales(ADMIN) == []

    def test_approved_sale_cannot_be_deleted(self, processor, sale):
        processor.update_sale(MANAGER, sale.id, {"status": "aprovada"})
        with pytest.raises(PolicyViolation):
            processor.delete_sale(ADMIN, sale.id)

    @pytest.mark.parametrize("auth", [MANAGER, ANA])
    def test_only_admin_deletes(self, processor, sale, auth):
        with pytest.raises(PermissionDenied):
            processor.delete_sale(auth, sale.id)


class TestListings:
    @pytest.fixture(autouse=True)
    def sales(self, processor):
        return [
            processor.create_sale(ANA, sale_input(cliente_nome="Padaria Sol", data_venda="2025-05-20")),
            processor.create_sale(ANA, sale_input(cliente_nome="Mercado Lua", data_venda="2025-06-10")),
            processor.create_sale(BIA, sale_input(cliente_nome="Padaria Estrela", data_venda="2025-06-01")),
        ]

    def test_salesperson_sees_own_sales_only(self, processor):
        sales = processor.list_sales(ANA, salesperson_id="bia")
        assert {s.salesperson_id for s in sales} == {"ana"}
        assert len(sales) == 2

    def test_newest_first(self, processor):
        dates = [s.sale_date for s in processor.list_sales(MANAGER)]
        assert dates == ["2025-06-10", "2025-06-01", "2025-05-20"]

    def test_search_and_date_range(self, processor):
        assert len(processor.list_sales(MANAGER, search="padaria")) == 2
        assert len(processor.list_sales(MANAGER, start="2025-06-01", end="2025-06-30")) == 2

    def test_sale_stats_scoped_to_caller(self, processor):
        stats = processor.sale_stats(ANA)
        assert stats.count == 2
        assert stats.total_commission == Decimal("180.00")

    def test_commissions_for_other_salesperson_requires_capability(self, processor):
        with pytest.raises(PermissionDenied):
            processor.commissions_for_salesperson(ANA, "bia")
        assert len(processor.commissions_for_salesperson(FINANCE, "bia")) == 1

    def test_commission_report(self, processor):
        report = processor.commission_report(MANAGER)
        assert report.stats.count == 3
        assert report.by_salesperson["ana"].count == 2


class TestCommissions:
    """Test payout bookkeeping."""

    @pytest.fixture
    def commissions(self, processor):
        sales = [processor.create_sale(ANA, sale_input()) for _ in range(3)]
        return [commission_for(processor, s.id) for s in sales]

    def test_paid_without_date_gets_today(self, processor, commissions):
        updated = processor.update_commission(FINANCE, commissions[0].id, {"status": "paga"})
        assert updated.status == CommissionStatus.PAID
        assert updated.payment_date == "2025-06-15"

    def test_explicit_payment_date_kept(self, processor, commissions):
        updated = processor.update_commission(
            FINANCE, commissions[0].id, {"status": "paga", "data_pagamento": "2025-06-12"}
        )
        assert updated.payment_date == "2025-06-12"

    def test_paid_commission_is_terminal(self, processor, commissions):
        processor.update_commission(FINANCE, commissions[0].id, {"status": "paga"})
        with pytest.raises(PolicyViolation):
            processor.update_commission(FINANCE, commissions[0].id, {"status": "pendente"})

    def test_salesperson_cannot_update(self, processor, commissions):
        with pytest.raises(PermissionDenied):
            processor.update_commission(ANA, commissions[0].id, {"status": "paga"})

    def test_batch_update(self, processor, commissions, audit):
        ids = [c.id for c in commissions[:2]]

        updated = processor.batch_update_commissions(FINANCE, {"comissao_ids": ids, "status": "paga"})

        assert {c.id for c in updated} == set(ids)
        assert all(c.payment_date == "2025-06-15" for c in updated)
        assert processor.get_commission(FINANCE, commissions[2].id).status == CommissionStatus.PENDING
        assert len([e for e in audit.entries if e.action == "BATCH_UPDATE"]) == 2

    def test_batch_is_all_or_nothing(self, processor, commissions):
        processor.update_commission(FINANCE, commissions[0].id, {"status": "paga"})
        ids = [c.id for c in commissions]

        with pytest.raises(PolicyViolation) as exc:
            processor.batch_update_commissions(FINANCE, {"comissao_ids": ids, "status": "cancelada"})

        assert len(exc.value.violations) == 1
        assert exc.value.violations[0].startswith(f"{commissions[0].id}:")
        assert processor.get_commission(FINANCE, commissions[1].id).status == CommissionStatus.PENDING

    def test_batch_with_unknown_id(self, processor, commissions):
        with pytest.raises(NotFound):
            processor.batch_update_commissions(FINANCE, {"comissao_ids": [commissions[0].id, "nope"], "status": "paga"})

    def test_commission_stats(self, processor, commissions):
        processor.update_commission(FINANCE, commissions[0].id, {"status": "paga"})

        stats = processor.commission_stats(FINANCE)

        assert stats.count == 3
        assert stats.count_by_status == {"pendente": 2, "paga": 1, "cancelada": 0}
        assert stats.value_by_status["paga"] == Decimal("79.97")


class TestMarketingPackages:
    """Test package registration, approval and commission."""

    @pytest.fixture
    def package(self, processor):
        return processor.create_package(ANA, package_input(vendedor_id="bia"))

    def test_salesperson_owns_package(self, package):
        assert package.salesperson_id == "ana"
        assert package.value == Decimal("220")
        assert package.status == PackageStatus.PENDING

    def test_price_comes_from_tier_table(self, processor):
        package = processor.create_package(MANAGER, package_input(pacote="diamante", vendedor_id="bia", valor=1))
        assert package.value == Decimal("720")

    def test_invalid_package(self, processor):
        with pytest.raises(ValidationError):
            processor.create_package(ANA, package_input(pedido="12"))

    def test_finance_approves_once(self, processor, package):
        approved = processor.approve_package(FINANCE, package.id)
        assert approved.status == PackageStatus.APPROVED

        with pytest.raises(PolicyViolation):
            processor.approve_package(FINANCE, package.id)

    def test_salesperson_cannot_approve(self, processor, package):
        with pytest.raises(PermissionDenied):
            processor.approve_package(ANA, package.id)

    def test_package_commission(self, processor, package):
        first = processor.package_commission(ANA, package.id)
        continuity = processor.package_commission(ANA, package.id, first_month=False)

        assert first.total == Decimal("22.00")
        assert continuity.total == Decimal("11.00")
        assert continuity.beneficiaries == ["ana"]

    def test_package_commission_of_other_salesperson(self, processor, package):
        with pytest.raises(PermissionDenied):
            processor.package_commission(BIA, package.id)

    def test_only_admin_deletes(self, processor, package):
        with pytest.raises(PermissionDenied):
            processor.delete_package(MANAGER, package.id)
        processor.delete_package(ADMIN, package.id)
        assert processor.list_packages(ADMIN) == []


class TestSalespersonReport:
    @pytest.fixture(autouse=True)
    def activity(self, processor):
        sale = processor.create_sale(ANA, sale_input(desconto=0))
        processor.update_sale(MANAGER, sale.id, {"status": "aprovada"})
        processor.create_sale(BIA, sale_input())

        package = processor.create_package(
            ANA, package_input(comissao_config={"percentage": 10, "vendedoras": ["ana", "carla"]})
        )
        processor.approve_package(FINANCE, package.id)

    def test_manager_sees_everyone(self, processor):
        reports = processor.salesperson_report(MANAGER)

        assert [(r.salesperson_id, r.total_commission) for r in reports] == [
            ("ana", Decimal("111.00")),
            ("carla", Decimal("11.00")),
        ]

    def test_packages_counted_in_their_reference_month(self, processor):
        june = processor.salesperson_report(MANAGER, start="2025-06-01", end="2025-06-30")
        july = processor.salesperson_report(MANAGER, start="2025-07-01", end="2025-07-31")

        assert [(r.salesperson_id, r.marketing_commission) for r in june] == [
            ("ana", Decimal("11.00")),
            ("carla", Decimal("11.00")),
        ]
        assert july == []

    def test_salesperson_sees_own_line(self, processor):
        reports = processor.salesperson_report(ANA)
        assert [r.salesperson_id for r in reports] == ["ana"]
        assert processor.salesperson_report(BIA) == []


class TestUsers:
    @pytest.fixture
    def user(self, processor):
        return processor.create_user(ADMIN, {"id": "ana", "nome": "Ana", "email": "ANA@Example.com", "perfil": "vendedor"})

    def test_email_normalized(self, user):
        assert user.email == "ana@example.com"
        assert user.role == Role.SALESPERSON

    def test_duplicate_email(self, processor, user):
        with pytest.raises(ConstraintViolation):
            processor.create_user(ADMIN, {"nome": "Outra", "email": "ana@example.com", "perfil": "vendedor"})

    def test_only_admin_creates(self, processor):
        with pytest.raises(PermissionDenied):
            processor.create_user(MANAGER, {"nome": "X", "email": "x@example.com", "perfil": "vendedor"})

    def test_user_renames_self(self, processor, user):
        assert processor.update_user(ANA, "ana", {"nome": "Ana Paula"}).name == "Ana Paula"

    def test_user_cannot_promote_self(self, processor, user):
        with pytest.raises(PermissionDenied):
            processor.update_user(ANA, "ana", {"perfil": "admin"})

    def test_list_users(self, processor, user):
        assert [u.id for u in processor.list_users(MANAGER)] == ["ana"]
        with pytest.raises(PermissionDenied):
            processor.list_users(ANA)
