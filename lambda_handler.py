"""
AWS Lambda handler for the Sales Commission calculator.

Exposes the stateless part of the engine (sale calculation and marketing
commission resolution) for API Gateway. The full CRUD API lives in main.py.
"""

import json
import logging
import uuid
from decimal import Decimal

from commission_engine import Settings, TaxConfig
from commission_engine.calculators import MarketingCommissionResolver, SaleCalculator, TaxRateConverter
from commission_engine.errors import ValidationError
from commission_engine.models import CommissionSplit, MarketingPackage, PackageTier
from commission_engine.output import OutputBuilder, to_money
from commission_engine.validators import MarketingPackageValidator, SaleValidator, parse_decimal

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Settings and calculators are reused across warm invocations
settings = Settings.from_env()
calculator = SaleCalculator(settings.tax_config)
resolver = MarketingCommissionResolver()
converter = TaxRateConverter()
validator = SaleValidator()
package_validator = MarketingPackageValidator()
output = OutputBuilder()

# CORS headers for API Gateway
CORS_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
}


def _response(status_code: int, body: dict) -> dict:
    return {"statusCode": status_code, "headers": CORS_HEADERS, "body": json.dumps(body)}


def lambda_handler(event, context):
    """
    Main Lambda entry point.

    Handles API Gateway events for:
    - GET /health
    - GET /api
    - POST /calculate_sale
    - POST /resolve_marketing_commission
    - POST /convert_tax_rate
    - OPTIONS (CORS preflight)
    """
    # Handle CORS preflight
    http_method = event.get("httpMethod") or event.get("requestContext", {}).get("http", {}).get("method", "")
    if http_method == "OPTIONS":
        return {"statusCode": 200, "headers": CORS_HEADERS, "body": ""}

    # Get path (supports both REST API and HTTP API formats)
    path = event.get("path") or event.get("rawPath", "")

    # Route to appropriate handler
    if path == "/health" and http_method == "GET":
        return _response(200, {"status": "healthy", "environment": settings.environment})
    elif path == "/api" and http_method == "GET":
        return handle_api_info()
    elif path == "/calculate_sale" and http_method == "POST":
        return _handle_json(event, calculate_sale)
    elif path == "/resolve_marketing_commission" and http_method == "POST":
        return _handle_json(event, resolve_marketing_commission)
    elif path == "/convert_tax_rate" and http_method == "POST":
        return _handle_json(event, convert_tax_rate)
    else:
        return _response(404, {"error": "Not found", "path": path})


def handle_api_info():
    """API information endpoint."""
    return _response(200, {
        "status": "ok",
        "message": "Sales Commission Calculator API",
        "version": "1.0",
        "environment": settings.environment,
        "runtime": "AWS Lambda",
        "endpoints": {
            "calculate_sale": "/calculate_sale [POST]",
            "resolve_marketing_commission": "/resolve_marketing_commission [POST]",
            "convert_tax_rate": "/convert_tax_rate [POST]",
            "health": "/health [GET]",
        },
    })


def calculate_sale(data: dict) -> dict:
    """Validate a sale payload and return its derived fields with the tax breakdown."""
    validator.validate(data).raise_if_invalid()
    tax_config = TaxConfig.from_dict(data["tax_config"]) if data.get("tax_config") else settings.tax_config

    calculation = calculator.compute(
        parse_decimal(data["valor_bruto"]),
        parse_decimal(data.get("desconto")) or Decimal("0"),
        parse_decimal(data["comissao_percentual"]),
        tax_config,
    )
    return output.calculation(calculation, calculator.tax_breakdown(calculation.commission_value, tax_config))


def resolve_marketing_commission(data: dict) -> dict:
    """Resolve the commission of a package described inline (not persisted)."""
    try:
        tier = PackageTier(data.get("pacote"))
    except ValueError:
        raise ValidationError(f"Unknown package tier: {data.get('pacote')}") from None
    if not data.get("vendedor_id"):
        raise ValidationError("vendedor_id is required")

    split = data.get("comissao_config")
    if split:
        package_validator.validate_split(split).raise_if_invalid()
    package = MarketingPackage(
        id=data.get("id") or str(uuid.uuid4()),
        order_number=data.get("pedido", ""),
        client_name=data.get("cliente", ""),
        reference_month=data.get("mes_referencia", ""),
        tier=tier,
        value=settings.price_table.value_for(tier),
        salesperson_id=data["vendedor_id"],
        split=CommissionSplit.from_dict(split) if split else None,
    )
    default_rate = settings.marketing_rate(first_month=not data.get("continuidade", False))
    return output.resolution(resolver.resolve(package, default_rate))


def convert_tax_rate(data: dict) -> dict:
    """Gross up a net amount, or net down a gross amount, for one tax rate."""
    rate = parse_decimal(data.get("taxa"))
    if rate is None:
        raise ValidationError(f"taxa must be a number, got: {data.get('taxa')}")

    if data.get("valor_liquido") is not None:
        net = parse_decimal(data["valor_liquido"])
        if net is None:
            raise ValidationError(f"valor_liquido must be a number, got: {data['valor_liquido']}")
        gross = converter.gross_from_net(net, rate)
    else:
        gross = parse_decimal(data.get("valor_bruto"))
        if gross is None:
            raise ValidationError("valor_bruto or valor_liquido is required")
        net = converter.net_from_gross(gross, rate)

    return {"valor_bruto": to_money(gross), "valor_liquido": to_money(net), "taxa": float(rate)}


def _handle_json(event, handler):
    """Parse the request body, run handler and map engine errors to HTTP codes."""
    try:
        # Parse request body
        body = event.get("body", "")
        if isinstance(body, str):
            if not body:
                return _response(400, {"error": "No input data provided", "status": "failed"})
            # Handle base64 encoded body (API Gateway)
            if event.get("isBase64Encoded"):
                import base64

                body = base64.b64decode(body).decode("utf-8")
            input_data = json.loads(body)
        else:
            input_data = body

        result = handler(input_data)
        logger.info(f"{handler.__name__} processed successfully")
        return _response(200, result)

    except json.JSONDecodeError as e:
        logger.error(f"JSON parse error: {str(e)}")
        return _response(400, {"error": f"Invalid JSON: {str(e)}", "status": "failed"})

    except ValidationError as e:
        logger.error(f"Validation error: {str(e)}")
        return _response(400, {"error": f"Validation error: {str(e)}", "errors": e.errors, "status": "validation_failed"})

    except (KeyError, TypeError) as e:
        # Malformed payload (missing fields, wrong types)
        logger.error(f"Validation error: {str(e)}")
        return _response(400, {"error": f"Validation error: {str(e)}", "status": "validation_failed"})

    except Exception as e:
        # Unexpected errors - log details but return generic message to avoid information disclosure
        logger.error(f"Unexpected processing error: {str(e)}", exc_info=True)
        return _response(500, {"error": "An unexpected error occurred during processing", "status": "failed"})
