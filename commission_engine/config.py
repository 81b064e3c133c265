"""
Runtime settings, read from the environment once at start-up.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal

from .models import PriceTable, TaxConfig, to_decimal


@dataclass(frozen=True)
class Settings:
    environment: str = "dev"
    port: int = 8080
    store_path: str | None = None
    tax_config: TaxConfig = field(default_factory=TaxConfig)
    price_table: PriceTable = field(default_factory=PriceTable)
    marketing_first_month_rate: Decimal = Decimal("10")
    marketing_continuity_rate: Decimal = Decimal("5")

    def marketing_rate(self, first_month: bool = True) -> Decimal:
        """Default package commission rate; the caller picks first month or continuity."""
        return self.marketing_first_month_rate if first_month else self.marketing_continuity_rate

    @classmethod
    def from_env(cls, environ: dict | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()

        tax_config = TaxConfig.from_dict({
            key: env[f"TAX_{key.upper()}"]
            for key in ("ir_rate", "pis_rate", "cofins_rate", "csll_rate", "iss_rate")
            if f"TAX_{key.upper()}" in env
        })
        price_table = PriceTable(
            bronze=to_decimal(env.get("PACKAGE_PRICE_BRONZE", defaults.price_table.bronze)),
            prata=to_decimal(env.get("PACKAGE_PRICE_PRATA", defaults.price_table.prata)),
            ouro=to_decimal(env.get("PACKAGE_PRICE_OURO", defaults.price_table.ouro)),
            diamante=to_decimal(env.get("PACKAGE_PRICE_DIAMANTE", defaults.price_table.diamante)),
        )

        return cls(
            environment=env.get("ENVIRONMENT", defaults.environment),
            port=int(env.get("PORT", defaults.port)),
            store_path=env.get("STORE_PATH") or None,
            tax_config=tax_config,
            price_table=price_table,
            marketing_first_month_rate=to_decimal(
                env.get("MARKETING_FIRST_MONTH_RATE", defaults.marketing_first_month_rate)
            ),
            marketing_continuity_rate=to_decimal(
                env.get("MARKETING_CONTINUITY_RATE", defaults.marketing_continuity_rate)
            ),
        )
