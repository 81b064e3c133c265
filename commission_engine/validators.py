"""
Input Validation for the Commission Engine

Validates incoming records before any calculation runs. Validators never
raise for bad input: every rule is checked and all violations are returned
together in a ValidationResult.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from .errors import ValidationError
from .models import MAX_MONEY, CommissionStatus, PackageTier, Role, ValidationResult

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

MAX_NAME_LENGTH = 255
MAX_EMAIL_LENGTH = 255
MAX_PHONE_LENGTH = 50
ORDER_NUMBER_LENGTH = 6


def parse_decimal(value) -> Decimal | None:
    """Parse a number, returning None when it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def parse_date(value) -> date | None:
    """Parse an ISO date or datetime, returning None when unparseable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class SaleValidator:
    """Validates sale input according to business rules."""

    def validate(self, data: dict, today: date | None = None) -> ValidationResult:
        errors: list[str] = []
        today = today or date.today()

        self._validate_client(data, errors)
        gross = self._validate_gross(data, errors)
        self._validate_discount(data, gross, errors)
        self._validate_commission_pct(data, errors)
        self._validate_sale_date(data, today, errors)

        return ValidationResult(valid=not errors, errors=errors)

    def _validate_client(self, data: dict, errors: list[str]) -> None:
        name = data.get("cliente_nome")
        if _is_blank(name):
            errors.append("Client name is required")
        elif len(str(name)) > MAX_NAME_LENGTH:
            errors.append(f"Client name cannot exceed {MAX_NAME_LENGTH} characters")

        email = data.get("cliente_email")
        if not _is_blank(email):
            if len(str(email)) > MAX_EMAIL_LENGTH:
                errors.append(f"Client email cannot exceed {MAX_EMAIL_LENGTH} characters")
            if not EMAIL_RE.match(str(email)):
                errors.append(f"Client email is not a valid address: {email}")

        phone = data.get("cliente_telefone")
        if not _is_blank(phone) and len(str(phone)) > MAX_PHONE_LENGTH:
            errors.append(f"Client phone cannot exceed {MAX_PHONE_LENGTH} characters")

    def _validate_gross(self, data: dict, errors: list[str]) -> Decimal | None:
        raw = data.get("valor_bruto")
        if _is_blank(raw):
            errors.append("Gross value is required")
            return None
        gross = parse_decimal(raw)
        if gross is None:
            errors.append(f"Gross value must be a number, got: {raw}")
            return None
        if gross <= 0:
            errors.append(f"Gross value must be greater than zero, got: {gross}")
            return None
        if gross > MAX_MONEY:
            errors.append(f"Gross value cannot exceed {MAX_MONEY}, got: {gross}")
            return None
        return gross

    def _validate_discount(self, data: dict, gross: Decimal | None, errors: list[str]) -> None:
        raw = data.get("desconto")
        if _is_blank(raw):
            return
        discount = parse_decimal(raw)
        if discount is None:
            errors.append(f"Discount must be a number, got: {raw}")
            return
        if discount < 0:
            errors.append(f"Discount cannot be negative, got: {discount}")
        elif gross is None and discount > MAX_MONEY:
            errors.append(f"Discount cannot exceed {MAX_MONEY}, got: {discount}")
        if gross is not None and discount >= gross:
            errors.append(f"Discount ({discount}) must be less than gross value ({gross})")

    def _validate_commission_pct(self, data: dict, errors: list[str]) -> None:
        raw = data.get("comissao_percentual")
        if _is_blank(raw):
            errors.append("Commission percentage is required")
            return
        pct = parse_decimal(raw)
        if pct is None:
            errors.append(f"Commission percentage must be a number, got: {raw}")
        elif not (0 <= pct <= 100):
            errors.append(f"Commission percentage must be between 0 and 100, got: {pct}")

    def _validate_sale_date(self, data: dict, today: date, errors: list[str]) -> None:
        raw = data.get("data_venda")
        if _is_blank(raw):
            errors.append("Sale date is required")
            return
        sale_date = parse_date(raw)
        if sale_date is None:
            errors.append(f"Sale date is not a valid date: {raw}")
        elif sale_date > today:
            errors.append(f"Sale date cannot be in the future: {sale_date.isoformat()}")


class UserValidator:
    """Validates user profile records."""

    ALLOWED_ROLES = (Role.ADMIN, Role.SALESPERSON, Role.MANAGER)

    def validate(self, data: dict, partial: bool = False) -> ValidationResult:
        """
        Validate a user record. With partial=True only the fields present in
        data are checked (profile updates).
        """
        errors: list[str] = []

        if not partial or "nome" in data:
            name = data.get("nome")
            if _is_blank(name):
                errors.append("Name is required")
            elif len(str(name)) > MAX_NAME_LENGTH:
                errors.append(f"Name cannot exceed {MAX_NAME_LENGTH} characters")

        if not partial or "email" in data:
            email = data.get("email")
            if _is_blank(email):
                errors.append("Email is required")
            else:
                if len(str(email)) > MAX_EMAIL_LENGTH:
                    errors.append(f"Email cannot exceed {MAX_EMAIL_LENGTH} characters")
                if not EMAIL_RE.match(str(email)):
                    errors.append(f"Email is not a valid address: {email}")

        if not partial or "perfil" in data:
            self._validate_role(data.get("perfil"), errors)

        if "ativo" in data and not isinstance(data["ativo"], bool):
            errors.append(f"ativo must be a boolean, got: {data['ativo']}")

        return ValidationResult(valid=not errors, errors=errors)

    def _validate_role(self, raw, errors: list[str]) -> None:
        if _is_blank(raw):
            errors.append("Role is required")
            return
        try:
            role = Role.from_value(raw)
        except ValidationError:
            role = None
        if role not in self.ALLOWED_ROLES:
            allowed = ", ".join(r.value for r in self.ALLOWED_ROLES)
            errors.append(f"Role must be one of {allowed}, got: {raw}")


class MarketingPackageValidator:
    """Validates marketing package input."""

    def validate(self, data: dict) -> ValidationResult:
        errors: list[str] = []

        order_number = data.get("pedido")
        if _is_blank(order_number):
            errors.append("Order number is required")
        elif len(str(order_number).strip()) != ORDER_NUMBER_LENGTH:
            errors.append(f"Order number must have exactly {ORDER_NUMBER_LENGTH} characters, got: {order_number}")

        if _is_blank(data.get("cliente")):
            errors.append("Client name is required")

        if _is_blank(data.get("vendedor_id")):
            errors.append("Salesperson is required")

        tier = data.get("pacote")
        if tier not in {t.value for t in PackageTier}:
            errors.append(f"Unknown package tier: {tier}")

        month = data.get("mes_referencia")
        if _is_blank(month):
            errors.append("Reference month is required")
        elif not MONTH_RE.match(str(month)):
            errors.append(f"Reference month must be YYYY-MM, got: {month}")

        split = data.get("comissao_config")
        if split:
            self._validate_split(split, errors)

        return ValidationResult(valid=not errors, errors=errors)

    def validate_split(self, split) -> ValidationResult:
        """Check a commission split on its own (inline resolution)."""
        errors: list[str] = []
        self._validate_split(split, errors)
        return ValidationResult(valid=not errors, errors=errors)

    def _validate_split(self, split, errors: list[str]) -> None:
        if not isinstance(split, dict):
            errors.append(f"Split must be an object with percentage and vendedoras, got: {split!r}")
            return
        pct = parse_decimal(split.get("percentage"))
        if pct is None:
            errors.append(f"Split percentage must be a number, got: {split.get('percentage')}")
        elif not (0 <= pct <= 100):
            errors.append(f"Split percentage must be between 0 and 100, got: {pct}")

        beneficiaries = split.get("vendedoras")
        if not isinstance(beneficiaries, list) or not beneficiaries:
            errors.append("Split must list at least one beneficiary")
        elif any(_is_blank(name) for name in beneficiaries):
            errors.append("Split beneficiaries cannot be blank")


class CommissionUpdateValidator:
    """Validates single and batch commission updates."""

    def validate(self, data: dict) -> ValidationResult:
        errors: list[str] = []
        self._validate_fields(data, errors)
        return ValidationResult(valid=not errors, errors=errors)

    def validate_batch(self, data: dict) -> ValidationResult:
        errors: list[str] = []
        ids = data.get("comissao_ids")
        if not isinstance(ids, list) or not ids:
            errors.append("comissao_ids must list at least one commission")
        elif any(_is_blank(commission_id) for commission_id in ids):
            errors.append("comissao_ids cannot contain blank ids")
        self._validate_fields(data, errors)
        return ValidationResult(valid=not errors, errors=errors)

    def _validate_fields(self, data: dict, errors: list[str]) -> None:
        status = data.get("status")
        if status is not None and status not in {s.value for s in CommissionStatus}:
            errors.append(f"Invalid commission status: {status}")

        payment_date = data.get("data_pagamento")
        if not _is_blank(payment_date) and parse_date(payment_date) is None:
            errors.append(f"Payment date is not a valid date: {payment_date}")
