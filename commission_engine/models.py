"""
Domain Models for the Commission Engine

These dataclasses provide type-safe representations of all business entities.
All monetary values use Decimal for precision. Dates are ISO-8601 strings.

Records exchanged with the store and the HTTP layer use the Portuguese field
names of the sales system (valor_bruto, comissao_valor, ...); the dataclasses
translate them in from_dict / to_record.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from .errors import ValidationError

# Largest amount a money column holds: 12 integer digits, 2 decimals.
MAX_MONEY = Decimal("999999999999.99")


def to_decimal(value, default: str = "0") -> Decimal:
    """Convert any numeric-ish value to Decimal through its string form."""
    if value is None or value == "":
        return Decimal(default)
    return Decimal(str(value))


# =============================================================================
# ENUMERATIONS
# =============================================================================


class SaleStatus(str, Enum):
    PENDING = "pendente"
    APPROVED = "aprovada"
    PAID = "paga"
    CANCELLED = "cancelada"


class CommissionStatus(str, Enum):
    PENDING = "pendente"
    PAID = "paga"
    CANCELLED = "cancelada"


class PackageStatus(str, Enum):
    PENDING = "pendente"
    APPROVED = "aprovado"


class PackageTier(str, Enum):
    BRONZE = "bronze"
    SILVER = "prata"
    GOLD = "ouro"
    DIAMOND = "diamante"


class Role(str, Enum):
    """Closed set of user roles."""

    ADMIN = "admin"
    MANAGER = "gerente"
    SALESPERSON = "vendedor"
    FINANCE = "financeiro"

    @classmethod
    def from_value(cls, value: "str | Role") -> "Role":
        if isinstance(value, Role):
            return value
        normalized = str(value).strip().lower()
        normalized = _ROLE_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            raise ValidationError(f"Unknown role: {value}") from None


_ROLE_ALIASES = {
    "manager": "gerente",
    "salesperson": "vendedor",
    "vendedora": "vendedor",
    "finance": "financeiro",
}


# =============================================================================
# CONFIGURATION MODELS
# =============================================================================


@dataclass(frozen=True)
class TaxConfig:
    """Tax rates retained on commissions, as fractions (0.015 = 1.5%)."""

    ir_rate: Decimal = Decimal("0.015")
    pis_rate: Decimal = Decimal("0.0065")
    cofins_rate: Decimal = Decimal("0.03")
    csll_rate: Decimal = Decimal("0.01")
    iss_rate: Decimal = Decimal("0.05")

    @property
    def composite_rate(self) -> Decimal:
        return self.ir_rate + self.pis_rate + self.cofins_rate + self.csll_rate + self.iss_rate

    def components(self) -> dict[str, Decimal]:
        return {
            "ir": self.ir_rate,
            "pis": self.pis_rate,
            "cofins": self.cofins_rate,
            "csll": self.csll_rate,
            "iss": self.iss_rate,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TaxConfig":
        defaults = cls()
        config = cls(
            ir_rate=to_decimal(data.get("ir_rate", defaults.ir_rate)),
            pis_rate=to_decimal(data.get("pis_rate", defaults.pis_rate)),
            cofins_rate=to_decimal(data.get("cofins_rate", defaults.cofins_rate)),
            csll_rate=to_decimal(data.get("csll_rate", defaults.csll_rate)),
            iss_rate=to_decimal(data.get("iss_rate", defaults.iss_rate)),
        )
        errors = [f"{name} cannot be negative, got: {rate}" for name, rate in config.components().items() if rate < 0]
        if config.composite_rate >= 1:
            errors.append(f"Composite tax rate must be below 1, got: {config.composite_rate}")
        if errors:
            raise ValidationError(errors)
        return config

    def to_dict(self) -> dict:
        return {
            "ir_rate": self.ir_rate,
            "pis_rate": self.pis_rate,
            "cofins_rate": self.cofins_rate,
            "csll_rate": self.csll_rate,
            "iss_rate": self.iss_rate,
        }


@dataclass(frozen=True)
class PriceTable:
    """Flat price of each marketing package tier."""

    bronze: Decimal = Decimal("120")
    prata: Decimal = Decimal("220")
    ouro: Decimal = Decimal("420")
    diamante: Decimal = Decimal("720")

    def value_for(self, tier: PackageTier) -> Decimal:
        return getattr(self, PackageTier(tier).value)


# =============================================================================
# ENTITY MODELS
# =============================================================================


@dataclass
class AuthContext:
    """Identity of the caller, supplied by the external auth layer."""

    user_id: str
    role: Role


@dataclass
class Sale:
    """One sales transaction ("venda") with its derived commission figures."""

    id: str
    salesperson_id: str
    client_name: str
    gross_value: Decimal
    discount: Decimal
    commission_pct: Decimal
    net_value: Decimal
    commission_value: Decimal
    tax_retained: Decimal
    net_commission: Decimal
    sale_date: str
    status: SaleStatus = SaleStatus.PENDING
    client_email: str | None = None
    client_phone: str | None = None
    notes: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Sale":
        return cls(
            id=data["id"],
            salesperson_id=data["vendedor_id"],
            client_name=data["cliente_nome"],
            gross_value=to_decimal(data["valor_bruto"]),
            discount=to_decimal(data.get("desconto")),
            commission_pct=to_decimal(data["comissao_percentual"]),
            net_value=to_decimal(data["valor_liquido"]),
            commission_value=to_decimal(data["comissao_valor"]),
            tax_retained=to_decimal(data["imposto_retido"]),
            net_commission=to_decimal(data["comissao_liquida"]),
            sale_date=data["data_venda"],
            status=SaleStatus(data.get("status", SaleStatus.PENDING.value)),
            client_email=data.get("cliente_email"),
            client_phone=data.get("cliente_telefone"),
            notes=data.get("observacoes"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "vendedor_id": self.salesperson_id,
            "cliente_nome": self.client_name,
            "cliente_email": self.client_email,
            "cliente_telefone": self.client_phone,
            "valor_bruto": self.gross_value,
            "desconto": self.discount,
            "valor_liquido": self.net_value,
            "comissao_percentual": self.commission_pct,
            "comissao_valor": self.commission_value,
            "imposto_retido": self.tax_retained,
            "comissao_liquida": self.net_commission,
            "status": self.status.value,
            "data_venda": self.sale_date,
            "observacoes": self.notes,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class Commission:
    """Payout-tracking shadow of a sale's financial outcome.

    Value fields mirror the owning sale; status evolves independently.
    """

    id: str
    sale_id: str
    salesperson_id: str
    commission_value: Decimal
    tax_retained: Decimal
    net_value: Decimal
    status: CommissionStatus = CommissionStatus.PENDING
    payment_date: str | None = None
    notes: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Commission":
        return cls(
            id=data["id"],
            sale_id=data["venda_id"],
            salesperson_id=data["vendedor_id"],
            commission_value=to_decimal(data["valor_comissao"]),
            tax_retained=to_decimal(data["imposto_retido"]),
            net_value=to_decimal(data["valor_liquido"]),
            status=CommissionStatus(data.get("status", CommissionStatus.PENDING.value)),
            payment_date=data.get("data_pagamento"),
            notes=data.get("observacoes"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "venda_id": self.sale_id,
            "vendedor_id": self.salesperson_id,
            "valor_comissao": self.commission_value,
            "imposto_retido": self.tax_retained,
            "valor_liquido": self.net_value,
            "status": self.status.value,
            "data_pagamento": self.payment_date,
            "observacoes": self.notes,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class CommissionSplit:
    """Explicit override of how a package's commission is distributed."""

    percentage: Decimal
    beneficiaries: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "CommissionSplit":
        beneficiaries = data.get("vendedoras", [])
        if not isinstance(beneficiaries, list):
            raise ValidationError(f"vendedoras must be a list of salesperson ids, got: {beneficiaries!r}")
        return cls(
            percentage=to_decimal(data["percentage"]),
            beneficiaries=list(beneficiaries),
        )

    def to_dict(self) -> dict:
        return {"percentage": self.percentage, "vendedoras": list(self.beneficiaries)}


@dataclass
class MarketingPackage:
    """A tiered marketing package sold for a reference month."""

    id: str
    order_number: str
    client_name: str
    reference_month: str
    tier: PackageTier
    value: Decimal
    salesperson_id: str
    status: PackageStatus = PackageStatus.PENDING
    split: CommissionSplit | None = None
    created_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "MarketingPackage":
        split = data.get("comissao_config")
        return cls(
            id=data["id"],
            order_number=data.get("pedido", ""),
            client_name=data.get("cliente", ""),
            reference_month=data["mes_referencia"],
            tier=PackageTier(data["pacote"]),
            value=to_decimal(data["valor"]),
            salesperson_id=data["vendedor_id"],
            status=PackageStatus(data.get("status", PackageStatus.PENDING.value)),
            split=CommissionSplit.from_dict(split) if split else None,
            created_at=data.get("created_at"),
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "pedido": self.order_number,
            "cliente": self.client_name,
            "mes_referencia": self.reference_month,
            "pacote": self.tier.value,
            "valor": self.value,
            "vendedor_id": self.salesperson_id,
            "status": self.status.value,
            "comissao_config": self.split.to_dict() if self.split else None,
            "created_at": self.created_at,
        }


@dataclass
class User:
    """A system user profile."""

    id: str
    name: str
    email: str
    role: Role
    active: bool = True
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        return cls(
            id=data["id"],
            name=data["nome"],
            email=data["email"],
            role=Role.from_value(data["perfil"]),
            active=data.get("ativo", True),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "nome": self.name,
            "email": self.email,
            "perfil": self.role.value,
            "ativo": self.active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


# =============================================================================
# OUTPUT / RESULT MODELS
# =============================================================================


@dataclass
class ValidationResult:
    """Outcome of a collecting validator."""

    valid: bool
    errors: list[str] = field(default_factory=list)

    def raise_if_invalid(self) -> None:
        if not self.valid:
            raise ValidationError(self.errors)


@dataclass
class SaleCalculation:
    """Derived monetary fields of a sale."""

    net_value: Decimal
    commission_value: Decimal
    tax_retained: Decimal
    net_commission: Decimal


@dataclass
class CommissionResolution:
    """Commission owed on a marketing package and how it is shared."""

    total: Decimal
    per_beneficiary: Decimal
    beneficiaries: list[str]
    shares: list[tuple[str, Decimal]] = field(default_factory=list)


@dataclass
class SaleStats:
    """Summary statistics for a collection of sales."""

    count: int = 0
    total_gross: Decimal = Decimal("0")
    total_net: Decimal = Decimal("0")
    total_commission: Decimal = Decimal("0")
    total_tax: Decimal = Decimal("0")
    total_net_commission: Decimal = Decimal("0")
    count_by_status: dict[str, int] = field(default_factory=dict)
    average_net: Decimal = Decimal("0")


@dataclass
class CommissionStats:
    """Summary statistics for a collection of commissions."""

    count: int = 0
    total_commission: Decimal = Decimal("0")
    total_tax: Decimal = Decimal("0")
    total_net: Decimal = Decimal("0")
    count_by_status: dict[str, int] = field(default_factory=dict)
    value_by_status: dict[str, Decimal] = field(default_factory=dict)
    average_net: Decimal = Decimal("0")


@dataclass
class SalespersonReport:
    """Combined sale and marketing commission of one salesperson."""

    salesperson_id: str
    sales_count: int = 0
    sales_value: Decimal = Decimal("0")
    sales_commission: Decimal = Decimal("0")
    marketing_count: int = 0
    marketing_value: Decimal = Decimal("0")
    marketing_commission: Decimal = Decimal("0")

    @property
    def total_commission(self) -> Decimal:
        return self.sales_commission + self.marketing_commission


@dataclass
class GroupTotal:
    """Count and value of one group in a commission report."""

    count: int = 0
    value: Decimal = Decimal("0")


@dataclass
class CommissionReport:
    """Commission totals with status and salesperson breakdowns."""

    stats: CommissionStats
    by_status: dict[str, GroupTotal] = field(default_factory=dict)
    by_salesperson: dict[str, GroupTotal] = field(default_factory=dict)
