"""
Sales Processor - Main Orchestrator

Coordinates every write and report of the sales system through discrete,
testable steps. The processor owns no I/O of its own: records go through the
injected Store and every change is handed to the injected AuditSink.

Write pipeline:
1. Check capability
2. Check lifecycle policy
3. Validate input
4. Calculate derived fields
5. Persist (sale and its commission shadow together)
6. Record audit entry
"""

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable

from .audit import AuditSink, InMemoryAuditSink, diff_fields
from .calculators import AggregationEngine, MarketingCommissionResolver, SaleCalculator
from .config import Settings
from .errors import ConstraintViolation, EngineError, NotFound, PermissionDenied, PolicyViolation, ValidationError
from .models import (
    AuthContext,
    Commission,
    CommissionReport,
    CommissionResolution,
    CommissionSplit,
    CommissionStats,
    CommissionStatus,
    MarketingPackage,
    PackageStatus,
    PackageTier,
    Role,
    Sale,
    SaleStats,
    SaleStatus,
    SalespersonReport,
    User,
)
from .policy import (
    DESCRIPTIVE_FIELDS,
    FINANCIAL_FIELDS,
    FINANCIAL_INPUT_FIELDS,
    Capability,
    StateTransitionPolicy,
    can,
    require,
)
from .store import COMMISSIONS, PACKAGES, SALES, USERS, Store
from .validators import (
    CommissionUpdateValidator,
    MarketingPackageValidator,
    SaleValidator,
    UserValidator,
    parse_date,
    parse_decimal,
)

logger = logging.getLogger(__name__)

DERIVED_FIELDS = tuple(f for f in FINANCIAL_FIELDS if f not in FINANCIAL_INPUT_FIELDS)


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class SalesProcessor:
    """
    Main orchestrator for sales, commissions and marketing packages.

    A sale and its commission are always written as a pair; if the second
    write fails the first one is rolled back before the error propagates.
    """

    def __init__(
        self,
        store: Store,
        audit: AuditSink | None = None,
        settings: Settings | None = None,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.audit = audit or InMemoryAuditSink()
        self.settings = settings or Settings()
        self.today = today

        self.sale_validator = SaleValidator()
        self.user_validator = UserValidator()
        self.package_validator = MarketingPackageValidator()
        self.commission_validator = CommissionUpdateValidator()
        self.calculator = SaleCalculator(self.settings.tax_config)
        self.resolver = MarketingCommissionResolver()
        self.aggregator = AggregationEngine(self.resolver)
        self.policy = StateTransitionPolicy()

    # =========================================================================
    # SALES
    # =========================================================================

    def create_sale(self, auth: AuthContext, data: dict[str, Any]) -> Sale:
        """Validate, calculate and persist a new sale with its commission."""
        require(auth, Capability.CREATE_SALE)
        owner_id = self._resolve_owner(auth, data.get("vendedor_id"))

        self.sale_validator.validate(data, today=self.today()).raise_if_invalid()

        gross = parse_decimal(data["valor_bruto"])
        discount = parse_decimal(data.get("desconto")) or Decimal("0")
        commission_pct = parse_decimal(data["comissao_percentual"])
        calculation = self.calculator.compute(gross, discount, commission_pct)

        # Initial status is always pending, whoever creates the sale.
        now = _utcnow()
        sale = Sale(
            id=_new_id(),
            salesperson_id=owner_id,
            client_name=str(data["cliente_nome"]).strip(),
            gross_value=gross,
            discount=discount,
            commission_pct=commission_pct,
            net_value=calculation.net_value,
            commission_value=calculation.commission_value,
            tax_retained=calculation.tax_retained,
            net_commission=calculation.net_commission,
            sale_date=parse_date(data["data_venda"]).isoformat(),
            status=SaleStatus.PENDING,
            client_email=data.get("cliente_email") or None,
            client_phone=data.get("cliente_telefone") or None,
            notes=data.get("observacoes"),
            created_at=now,
            updated_at=now,
        )
        commission = Commission(
            id=_new_id(),
            sale_id=sale.id,
            salesperson_id=owner_id,
            commission_value=sale.commission_value,
            tax_retained=sale.tax_retained,
            net_value=sale.net_commission,
            created_at=now,
            updated_at=now,
        )

        self.store.insert(SALES, sale.to_record())
        try:
            self.store.insert(COMMISSIONS, commission.to_record())
        except EngineError:
            logger.error(f"Commission insert failed for sale {sale.id}, rolling back sale")
            self.store.delete(SALES, sale.id)
            raise

        self.audit.record(
            auth.user_id, "CREATE", "VENDA", sale.id,
            diff_fields({}, self._financial_snapshot(sale.to_record())),
            f"Sale created for {sale.client_name}",
        )
        logger.info(f"Sale {sale.id} created for salesperson {owner_id}: net commission {sale.net_commission}")
        return sale

    def get_sale(self, auth: AuthContext, sale_id: str) -> Sale:
        return Sale.from_dict(self._fetch_sale_record(auth, sale_id))

    def list_sales(
        self,
        auth: AuthContext,
        status: str | None = None,
        salesperson_id: str | None = None,
        start: str | None = None,
        end: str | None = None,
        search: str | None = None,
    ) -> list[Sale]:
        """Sales visible to the caller, newest sale date first."""
        filters: dict[str, Any] = {}
        owner = self._scope(auth, salesperson_id, Capability.VIEW_ANY_SALE)
        if owner:
            filters["vendedor_id"] = owner
        if status:
            filters["status"] = SaleStatus(status).value

        records = self.store.find_where(SALES, filters, date_field="data_venda", start=start, end=end)
        if search:
            needle = search.lower()
            records = [
                r for r in records
                if needle in (r.get("cliente_nome") or "").lower()
                or needle in (r.get("cliente_email") or "").lower()
            ]
        records.sort(key=lambda r: (r["data_venda"], r.get("created_at") or ""), reverse=True)
        return [Sale.from_dict(r) for r in records]

    def update_sale(self, auth: AuthContext, sale_id: str, data: dict[str, Any]) -> Sale:
        """
        Apply an edit and/or a status change to a sale.

        Field edits are only accepted on pending sales. When any financial
        input is present, every derived field is recomputed and pushed to the
        linked commission; the commission's own status is left alone.
        """
        record = self._fetch_sale_record(auth, sale_id)
        sale = Sale.from_dict(record)
        if sale.salesperson_id == auth.user_id:
            require(auth, Capability.UPDATE_OWN_SALE)
        else:
            require(auth, Capability.UPDATE_ANY_SALE)

        edited = [f for f in (*DESCRIPTIVE_FIELDS, *FINANCIAL_FIELDS) if f in data]
        target_status = self._target_sale_status(auth, sale, data.get("status"))

        # Policy gate
        violations = self.policy.edit_violations(sale.status, edited)
        if target_status is not None and not self.policy.can_transition_sale(sale.status, target_status):
            violations.append(f"Sale cannot move from {sale.status.value} to {target_status.value}")
        if violations:
            raise PolicyViolation(violations)

        # Validation on the merged record
        computed = [f for f in DERIVED_FIELDS if f in data]
        if computed:
            raise ValidationError([f"{name} is calculated and cannot be set directly" for name in computed])
        merged = {**record, **{f: data[f] for f in edited}}
        self.sale_validator.validate(merged, today=self.today()).raise_if_invalid()

        changes: dict[str, Any] = {}
        for name in DESCRIPTIVE_FIELDS:
            if name in data:
                changes[name] = data[name]
        if "cliente_nome" in changes:
            changes["cliente_nome"] = str(changes["cliente_nome"]).strip()
        if "data_venda" in changes:
            changes["data_venda"] = parse_date(changes["data_venda"]).isoformat()

        recalculated = any(f in data for f in FINANCIAL_INPUT_FIELDS)
        if recalculated:
            # Same values the validator approved; a blank discount means zero.
            gross, discount, commission_pct, calculation = self.calculator.recalculate(
                sale,
                gross=parse_decimal(merged["valor_bruto"]),
                discount=parse_decimal(merged.get("desconto")) or Decimal("0"),
                commission_pct=parse_decimal(merged["comissao_percentual"]),
            )
            changes.update({
                "valor_bruto": gross,
                "desconto": discount,
                "comissao_percentual": commission_pct,
                "valor_liquido": calculation.net_value,
                "comissao_valor": calculation.commission_value,
                "imposto_retido": calculation.tax_retained,
                "comissao_liquida": calculation.net_commission,
            })
        if target_status is not None:
            changes["status"] = target_status.value

        diffs = diff_fields(sale.to_record(), changes)
        if not diffs:
            return sale

        changes["updated_at"] = _utcnow()
        updated = self.store.update(SALES, sale_id, changes)
        if recalculated:
            self._sync_commission(record, updated)

        action = "STATUS_CHANGE" if target_status is not None and not edited else "UPDATE"
        self.audit.record(auth.user_id, action, "VENDA", sale_id, diffs, f"Sale {sale_id} updated")
        logger.info(f"Sale {sale_id} updated: {', '.join(d.field for d in diffs)}")
        return Sale.from_dict(updated)

    def delete_sale(self, auth: AuthContext, sale_id: str) -> None:
        """Delete a pending or cancelled sale together with its commission."""
        require(auth, Capability.DELETE_SALE)
        sale = Sale.from_dict(self._fetch_sale_record(auth, sale_id))
        self.policy.check_sale_deletion(sale.status)

        self.store.delete(SALES, sale_id)
        removed = self.store.delete_where(COMMISSIONS, {"venda_id": sale_id})

        self.audit.record(
            auth.user_id, "DELETE", "VENDA", sale_id, [],
            f"Sale {sale_id} deleted ({removed} commission record(s) removed)",
        )
        logger.info(f"Sale {sale_id} deleted")

    def sale_stats(
        self,
        auth: AuthContext,
        salesperson_id: str | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> SaleStats:
        return self.aggregator.summarize_sales(
            self.list_sales(auth, salesperson_id=salesperson_id, start=start, end=end)
        )

    # =========================================================================
    # COMMISSIONS
    # =========================================================================

    def get_commission(self, auth: AuthContext, commission_id: str) -> Commission:
        return Commission.from_dict(self._fetch_commission_record(auth, commission_id))

    def list_commissions(
        self,
        auth: AuthContext,
        status: str | None = None,
        salesperson_id: str | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> list[Commission]:
        """Commissions visible to the caller, newest first."""
        filters: dict[str, Any] = {}
        owner = self._scope(auth, salesperson_id, Capability.VIEW_ANY_COMMISSION)
        if owner:
            filters["vendedor_id"] = owner
        if status:
            filters["status"] = CommissionStatus(status).value

        records = self.store.find_where(COMMISSIONS, filters, date_field="created_at", start=start, end=end)
        records.sort(key=lambda r: r.get("created_at") or "", reverse=True)
        return [Commission.from_dict(r) for r in records]

    def commissions_for_salesperson(
        self,
        auth: AuthContext,
        salesperson_id: str,
        status: str | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> list[Commission]:
        if salesperson_id != auth.user_id:
            require(auth, Capability.VIEW_ANY_COMMISSION)
        return self.list_commissions(auth, status=status, salesperson_id=salesperson_id, start=start, end=end)

    def update_commission(self, auth: AuthContext, commission_id: str, data: dict[str, Any]) -> Commission:
        """Payout bookkeeping on one commission: status, payment date, notes."""
        require(auth, Capability.UPDATE_COMMISSION_STATUS)
        self.commission_validator.validate(data).raise_if_invalid()

        record = self._fetch_commission_record(auth, commission_id)
        commission = Commission.from_dict(record)
        self._check_commission_transition(commission, data.get("status"))

        changes = self._commission_changes(data)
        diffs = diff_fields(record, changes)
        if not diffs:
            return commission

        changes["updated_at"] = _utcnow()
        updated = self.store.update(COMMISSIONS, commission_id, changes)
        self.audit.record(auth.user_id, "UPDATE", "COMISSAO", commission_id, diffs, f"Commission {commission_id} updated")
        logger.info(f"Commission {commission_id} updated: {', '.join(d.field for d in diffs)}")
        return Commission.from_dict(updated)

    def batch_update_commissions(self, auth: AuthContext, data: dict[str, Any]) -> list[Commission]:
        """
        Apply the same payout update to many commissions.

        Every transition is checked before anything is written; one illegal
        transition rejects the whole batch with all violations listed.
        """
        require(auth, Capability.BATCH_UPDATE_COMMISSIONS)
        self.commission_validator.validate_batch(data).raise_if_invalid()

        ids = list(dict.fromkeys(data["comissao_ids"]))
        records = {r["id"]: r for r in self.store.find_where(COMMISSIONS, {"id": ids})}
        missing = [commission_id for commission_id in ids if commission_id not in records]
        if missing:
            raise NotFound(f"Commissions not found: {', '.join(missing)}")

        violations = []
        for commission_id in ids:
            try:
                self._check_commission_transition(Commission.from_dict(records[commission_id]), data.get("status"))
            except PolicyViolation as e:
                violations.extend(f"{commission_id}: {v}" for v in e.violations)
        if violations:
            raise PolicyViolation(violations)

        changes = self._commission_changes(data)
        changes["updated_at"] = _utcnow()
        updated = self.store.update_where(COMMISSIONS, {"id": ids}, changes)

        for commission_id in ids:
            self.audit.record(
                auth.user_id, "BATCH_UPDATE", "COMISSAO", commission_id,
                diff_fields(records[commission_id], changes), "Commission updated in batch",
            )
        logger.info(f"Batch updated {len(updated)} commissions")
        return [Commission.from_dict(r) for r in updated]

    def commission_stats(
        self,
        auth: AuthContext,
        salesperson_id: str | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> CommissionStats:
        return self.aggregator.summarize_commissions(
            self.list_commissions(auth, salesperson_id=salesperson_id, start=start, end=end)
        )

    def commission_report(
        self,
        auth: AuthContext,
        salesperson_id: str | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> CommissionReport:
        return self.aggregator.commission_report(
            self.list_commissions(auth, salesperson_id=salesperson_id, start=start, end=end)
        )

    # =========================================================================
    # MARKETING PACKAGES
    # =========================================================================

    def create_package(self, auth: AuthContext, data: dict[str, Any]) -> MarketingPackage:
        """Register a marketing package priced from the tier table."""
        require(auth, Capability.MANAGE_PACKAGES)
        if not can(auth.role, Capability.CREATE_SALE_FOR_OTHERS):
            data = {**data, "vendedor_id": auth.user_id}

        self.package_validator.validate(data).raise_if_invalid()

        tier = PackageTier(data["pacote"])
        split = data.get("comissao_config")
        package = MarketingPackage(
            id=_new_id(),
            order_number=str(data["pedido"]).strip(),
            client_name=str(data["cliente"]).strip(),
            reference_month=data["mes_referencia"],
            tier=tier,
            value=self.settings.price_table.value_for(tier),
            salesperson_id=data["vendedor_id"],
            split=CommissionSplit.from_dict(split) if split else None,
            created_at=_utcnow(),
        )
        self.store.insert(PACKAGES, package.to_record())

        self.audit.record(
            auth.user_id, "CREATE", "MARKETING", package.id,
            diff_fields({}, {"pacote": tier.value, "valor": package.value}),
            f"Marketing package {package.order_number} created for {package.client_name}",
        )
        logger.info(f"Marketing package {package.id} ({tier.value}) created")
        return package

    def list_packages(
        self,
        auth: AuthContext,
        status: str | None = None,
        salesperson_id: str | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> list[MarketingPackage]:
        filters: dict[str, Any] = {}
        owner = self._scope(auth, salesperson_id, Capability.VIEW_ANY_SALE)
        if owner:
            filters["vendedor_id"] = owner
        if status:
            filters["status"] = PackageStatus(status).value

        records = self.store.find_where(PACKAGES, filters, date_field="created_at", start=start, end=end)
        records.sort(key=lambda r: r.get("created_at") or "", reverse=True)
        return [MarketingPackage.from_dict(r) for r in records]

    def approve_package(self, auth: AuthContext, package_id: str) -> MarketingPackage:
        require(auth, Capability.APPROVE_PACKAGE)
        package = MarketingPackage.from_dict(self.store.find_by_id(PACKAGES, package_id))
        self.policy.check_package_transition(package.status, PackageStatus.APPROVED)

        updated = self.store.update(PACKAGES, package_id, {"status": PackageStatus.APPROVED.value})
        self.audit.record(
            auth.user_id, "APPROVE", "MARKETING", package_id,
            diff_fields({"status": package.status.value}, {"status": PackageStatus.APPROVED.value}),
            f"Marketing package {package.order_number} approved",
        )
        logger.info(f"Marketing package {package_id} approved")
        return MarketingPackage.from_dict(updated)

    def delete_package(self, auth: AuthContext, package_id: str) -> None:
        require(auth, Capability.DELETE_PACKAGE)
        package = MarketingPackage.from_dict(self.store.find_by_id(PACKAGES, package_id))
        self.store.delete(PACKAGES, package_id)
        self.audit.record(
            auth.user_id, "DELETE", "MARKETING", package_id, [],
            f"Marketing package {package.order_number} deleted",
        )

    def package_commission(self, auth: AuthContext, package_id: str, first_month: bool = True) -> CommissionResolution:
        """Commission of one package, resolved on demand and never stored."""
        package = MarketingPackage.from_dict(self.store.find_by_id(PACKAGES, package_id))
        if package.salesperson_id != auth.user_id:
            require(auth, Capability.VIEW_ANY_SALE)
        return self.resolver.resolve(package, self.settings.marketing_rate(first_month))

    # =========================================================================
    # REPORTS
    # =========================================================================

    def salesperson_report(
        self,
        auth: AuthContext,
        start: str | None = None,
        end: str | None = None,
        first_month: bool = True,
    ) -> list[SalespersonReport]:
        """
        Combined sale and marketing commission per salesperson.

        Callers without report access only get their own line.
        """
        sales = [
            Sale.from_dict(r) for r in self.store.find_where(
                SALES, {"status": SaleStatus.APPROVED.value}, date_field="data_venda", start=start, end=end
            )
        ]
        # Packages belong to their reference month, not to the day they were entered.
        packages = [
            MarketingPackage.from_dict(r)
            for r in self.store.find_where(PACKAGES, {"status": PackageStatus.APPROVED.value})
            if (not start or r["mes_referencia"] >= str(start)[:7])
            and (not end or r["mes_referencia"] <= str(end)[:7])
        ]
        reports = self.aggregator.salesperson_report(sales, packages, self.settings.marketing_rate(first_month))

        if can(auth.role, Capability.VIEW_REPORTS):
            return reports
        return [r for r in reports if r.salesperson_id == auth.user_id]

    # =========================================================================
    # USERS
    # =========================================================================

    def create_user(self, auth: AuthContext, data: dict[str, Any]) -> User:
        require(auth, Capability.MANAGE_USERS)
        self.user_validator.validate(data).raise_if_invalid()

        email = str(data["email"]).strip().lower()
        if self.store.find_where(USERS, {"email": email}):
            raise ConstraintViolation(f"A user with email {email} already exists")

        now = _utcnow()
        user = User(
            id=data.get("id") or _new_id(),
            name=str(data["nome"]).strip(),
            email=email,
            role=Role.from_value(data["perfil"]),
            active=data.get("ativo", True),
            created_at=now,
            updated_at=now,
        )
        self.store.insert(USERS, user.to_record())
        self.audit.record(
            auth.user_id, "CREATE", "USER", user.id,
            diff_fields({}, {"email": user.email, "perfil": user.role.value}),
            f"User {user.email} created",
        )
        logger.info(f"User {user.id} created with role {user.role.value}")
        return user

    def update_user(self, auth: AuthContext, user_id: str, data: dict[str, Any]) -> User:
        """Admins update anyone; other users may only rename themselves."""
        if user_id != auth.user_id or "perfil" in data or "ativo" in data or "email" in data:
            require(auth, Capability.MANAGE_USERS)
        fields = {k: data[k] for k in ("nome", "email", "perfil", "ativo") if k in data}
        self.user_validator.validate(fields, partial=True).raise_if_invalid()

        record = self.store.find_by_id(USERS, user_id)
        if "nome" in fields:
            fields["nome"] = str(fields["nome"]).strip()
        if "email" in fields:
            fields["email"] = str(fields["email"]).strip().lower()
            clash = [u for u in self.store.find_where(USERS, {"email": fields["email"]}) if u["id"] != user_id]
            if clash:
                raise ConstraintViolation(f"A user with email {fields['email']} already exists")
        if "perfil" in fields:
            fields["perfil"] = Role.from_value(fields["perfil"]).value

        diffs = diff_fields(record, fields)
        if not diffs:
            return User.from_dict(record)

        fields["updated_at"] = _utcnow()
        updated = self.store.update(USERS, user_id, fields)
        self.audit.record(auth.user_id, "UPDATE", "USER", user_id, diffs, f"User {user_id} updated")
        return User.from_dict(updated)

    def list_users(self, auth: AuthContext, role: str | None = None, active: bool | None = None) -> list[User]:
        require(auth, Capability.LIST_USERS)
        filters: dict[str, Any] = {}
        if role:
            filters["perfil"] = Role.from_value(role).value
        if active is not None:
            filters["ativo"] = active
        records = self.store.find_where(USERS, filters)
        records.sort(key=lambda r: r.get("nome") or "")
        return [User.from_dict(r) for r in records]

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _resolve_owner(self, auth: AuthContext, requested: str | None) -> str:
        """Salespeople always sell for themselves; other roles must name the salesperson."""
        if not can(auth.role, Capability.CREATE_SALE_FOR_OTHERS):
            return auth.user_id
        if not requested:
            raise ValidationError("vendedor_id is required")
        return requested

    @staticmethod
    def _scope(auth: AuthContext, salesperson_id: str | None, capability: Capability) -> str | None:
        """Owner filter for a listing: forced to the caller without capability."""
        if not can(auth.role, capability):
            return auth.user_id
        return salesperson_id or None

    def _fetch_sale_record(self, auth: AuthContext, sale_id: str) -> dict:
        record = self.store.find_by_id(SALES, sale_id)
        if record["vendedor_id"] != auth.user_id and not can(auth.role, Capability.VIEW_ANY_SALE):
            raise NotFound(f"vendas record {sale_id} not found")
        return record

    def _fetch_commission_record(self, auth: AuthContext, commission_id: str) -> dict:
        record = self.store.find_by_id(COMMISSIONS, commission_id)
        if record["vendedor_id"] != auth.user_id and not can(auth.role, Capability.VIEW_ANY_COMMISSION):
            raise NotFound(f"comissoes record {commission_id} not found")
        return record

    @staticmethod
    def _target_sale_status(auth: AuthContext, sale: Sale, raw: str | None) -> SaleStatus | None:
        """Requested status, or None when no status change is asked for."""
        if raw is None:
            return None
        try:
            target = SaleStatus(raw)
        except ValueError:
            raise ValidationError(f"Invalid sale status: {raw}") from None
        if target == sale.status:
            return None
        if not can(auth.role, Capability.UPDATE_SALE_STATUS):
            raise PermissionDenied(f"Role {auth.role.value} cannot change sale status")
        return target

    def _check_commission_transition(self, commission: Commission, raw: str | None) -> None:
        if raw is not None:
            self.policy.check_commission_transition(commission.status, CommissionStatus(raw))

    def _commission_changes(self, data: dict[str, Any]) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        if data.get("status"):
            changes["status"] = data["status"]
            if data["status"] == CommissionStatus.PAID.value and not data.get("data_pagamento"):
                changes["data_pagamento"] = self.today().isoformat()
        if data.get("data_pagamento"):
            changes["data_pagamento"] = parse_date(data["data_pagamento"]).isoformat()
        if "observacoes" in data:
            changes["observacoes"] = data["observacoes"]
        return changes

    def _sync_commission(self, previous_sale: dict, updated_sale: dict) -> None:
        """Mirror the sale's recalculated values onto its commission, or undo the sale write."""
        try:
            self.store.update_where(
                COMMISSIONS,
                {"venda_id": updated_sale["id"]},
                {
                    "valor_comissao": updated_sale["comissao_valor"],
                    "imposto_retido": updated_sale["imposto_retido"],
                    "valor_liquido": updated_sale["comissao_liquida"],
                    "updated_at": updated_sale["updated_at"],
                },
            )
        except EngineError:
            logger.error(f"Commission sync failed for sale {updated_sale['id']}, restoring sale")
            self.store.update(SALES, updated_sale["id"], previous_sale)
            raise

    @staticmethod
    def _financial_snapshot(record: dict) -> dict:
        return {name: record[name] for name in (*FINANCIAL_FIELDS, "status")}
