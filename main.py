from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from commission_engine import AuthContext, Role, SalesProcessor, Settings
from commission_engine.audit import LoggingAuditSink
from commission_engine.errors import (
    ConstraintViolation, NotFound, PermissionDenied, PolicyViolation, ValidationError
)
from commission_engine.output import OutputBuilder
from commission_engine.store import InMemoryStore, JsonFileStore
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

output = OutputBuilder()


def build_processor(settings: Settings) -> SalesProcessor:
    """Composition root: pick the store backend and wire the audit sink."""
    if settings.store_path:
        store = JsonFileStore(settings.store_path)
    else:
        store = InMemoryStore()
    return SalesProcessor(store, audit=LoggingAuditSink(), settings=settings)


def create_app(processor: SalesProcessor | None = None) -> Flask:
    settings = processor.settings if processor else Settings.from_env()
    processor = processor or build_processor(settings)

    app = Flask(__name__)
    app.config["PROCESSOR"] = processor

    # Enable CORS for all routes
    CORS(app)

    register_error_handlers(app)
    register_routes(app, processor)
    return app


class Unauthenticated(Exception):
    """Request reached the API without an identity from the auth gateway."""


def current_auth() -> AuthContext:
    """Identity forwarded by the auth gateway in request headers."""
    user_id = request.headers.get("X-User-Id")
    role = request.headers.get("X-User-Role")
    if not user_id or not role:
        raise Unauthenticated("Missing X-User-Id / X-User-Role headers")
    return AuthContext(user_id=user_id, role=Role.from_value(role))


def request_json() -> dict:
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        raise ValidationError("No input data provided")
    return data


def paginate(items: list) -> tuple[list, dict]:
    try:
        page = max(1, int(request.args.get("page", 1)))
        limit = min(100, max(1, int(request.args.get("limit", 10))))
    except ValueError:
        raise ValidationError("page and limit must be integers") from None
    total = len(items)
    offset = (page - 1) * limit
    return items[offset:offset + limit], {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": (total + limit - 1) // limit,
    }


def date_range() -> dict:
    return {
        "start": request.args.get("data_inicio") or None,
        "end": request.args.get("data_fim") or None,
    }


def register_error_handlers(app: Flask) -> None:

    @app.errorhandler(Unauthenticated)
    def handle_unauthenticated(e):
        return jsonify({"error": str(e), "status": "unauthorized"}), 401

    @app.errorhandler(ValidationError)
    def handle_validation(e):
        logger.error(f"Validation error: {str(e)}")
        return jsonify({"error": str(e), "errors": e.errors, "status": "validation_failed"}), 400

    @app.errorhandler(PolicyViolation)
    def handle_policy(e):
        logger.error(f"Policy violation: {str(e)}")
        return jsonify({"error": str(e), "violations": e.violations, "status": "policy_violation"}), 409

    @app.errorhandler(PermissionDenied)
    def handle_permission(e):
        return jsonify({"error": str(e), "status": "forbidden"}), 403

    @app.errorhandler(NotFound)
    def handle_not_found(e):
        return jsonify({"error": str(e), "status": "not_found"}), 404

    @app.errorhandler(ConstraintViolation)
    def handle_constraint(e):
        return jsonify({"error": str(e), "status": "conflict"}), 409

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description, "status": "failed"}), e.code
        # Unexpected errors - log details but return generic message
        logger.error(f"Unexpected processing error: {str(e)}", exc_info=True)
        return jsonify({"error": "Internal server error", "status": "failed"}), 500


def register_routes(app: Flask, processor: SalesProcessor) -> None:

    @app.route("/health", methods=["GET"])
    def health():
        """Health check for monitoring"""
        return jsonify({"status": "healthy", "environment": processor.settings.environment}), 200

    @app.route("/api", methods=["GET"])
    def api_info():
        """API information endpoint"""
        return jsonify({
            "status": "ok",
            "message": "Sales Commission API",
            "version": "1.0",
            "endpoints": {
                "vendas": "/vendas [GET, POST]",
                "venda": "/vendas/<id> [GET, PUT, DELETE]",
                "vendas_stats": "/vendas/stats [GET]",
                "comissoes": "/comissoes [GET]",
                "comissao": "/comissoes/<id> [PUT]",
                "comissoes_batch": "/comissoes/batch-update [POST]",
                "comissoes_stats": "/comissoes/stats [GET]",
                "comissoes_vendedor": "/comissoes/vendedor/<id> [GET]",
                "marketing": "/marketing [GET, POST]",
                "marketing_aprovar": "/marketing/<id>/aprovar [POST]",
                "relatorio_vendedores": "/relatorios/vendedores [GET]",
                "usuarios": "/usuarios [GET, POST]",
                "health": "/health [GET]"
            }
        }), 200

    # -- Sales ----------------------------------------------------------------

    @app.route("/vendas", methods=["GET"])
    def list_sales():
        sales = processor.list_sales(
            current_auth(),
            status=request.args.get("status") or None,
            salesperson_id=request.args.get("vendedor_id") or None,
            search=request.args.get("search") or None,
            **date_range(),
        )
        page, pagination = paginate(sales)
        return jsonify({"vendas": [output.sale(s) for s in page], "pagination": pagination}), 200

    @app.route("/vendas", methods=["POST"])
    def create_sale():
        sale = processor.create_sale(current_auth(), request_json())
        return jsonify(output.sale(sale)), 201

    @app.route("/vendas/stats", methods=["GET"])
    def sale_stats():
        stats = processor.sale_stats(
            current_auth(), salesperson_id=request.args.get("vendedor_id") or None, **date_range()
        )
        return jsonify(output.sale_stats(stats)), 200

    @app.route("/vendas/<sale_id>", methods=["GET"])
    def get_sale(sale_id):
        return jsonify(output.sale(processor.get_sale(current_auth(), sale_id))), 200

    @app.route("/vendas/<sale_id>", methods=["PUT"])
    def update_sale(sale_id):
        sale = processor.update_sale(current_auth(), sale_id, request_json())
        return jsonify(output.sale(sale)), 200

    @app.route("/vendas/<sale_id>", methods=["DELETE"])
    def delete_sale(sale_id):
        processor.delete_sale(current_auth(), sale_id)
        return jsonify({"message": "Sale deleted successfully"}), 200

    # -- Commissions ----------------------------------------------------------

    @app.route("/comissoes", methods=["GET"])
    def list_commissions():
        commissions = processor.list_commissions(
            current_auth(),
            status=request.args.get("status") or None,
            salesperson_id=request.args.get("vendedor_id") or None,
            **date_range(),
        )
        page, pagination = paginate(commissions)
        return jsonify({"comissoes": [output.commission(c) for c in page], "pagination": pagination}), 200

    @app.route("/comissoes/stats", methods=["GET"])
    def commission_stats():
        stats = processor.commission_stats(
            current_auth(), salesperson_id=request.args.get("vendedor_id") or None, **date_range()
        )
        return jsonify(output.commission_stats(stats)), 200

    @app.route("/comissoes/relatorio", methods=["GET"])
    def commission_report():
        report = processor.commission_report(
            current_auth(), salesperson_id=request.args.get("vendedor_id") or None, **date_range()
        )
        return jsonify(output.commission_report(report)), 200

    @app.route("/comissoes/batch-update", methods=["POST"])
    def batch_update_commissions():
        updated = processor.batch_update_commissions(current_auth(), request_json())
        return jsonify({
            "message": f"Successfully updated {len(updated)} commissions",
            "updated_comissoes": [output.commission(c) for c in updated],
        }), 200

    @app.route("/comissoes/vendedor/<salesperson_id>", methods=["GET"])
    def commissions_by_salesperson(salesperson_id):
        commissions = processor.commissions_for_salesperson(
            current_auth(), salesperson_id, status=request.args.get("status") or None, **date_range()
        )
        page, pagination = paginate(commissions)
        return jsonify({"comissoes": [output.commission(c) for c in page], "pagination": pagination}), 200

    @app.route("/comissoes/<commission_id>", methods=["GET"])
    def get_commission(commission_id):
        return jsonify(output.commission(processor.get_commission(current_auth(), commission_id))), 200

    @app.route("/comissoes/<commission_id>", methods=["PUT"])
    def update_commission(commission_id):
        commission = processor.update_commission(current_auth(), commission_id, request_json())
        return jsonify(output.commission(commission)), 200

    # -- Marketing packages ---------------------------------------------------

    @app.route("/marketing", methods=["GET"])
    def list_packages():
        packages = processor.list_packages(
            current_auth(),
            status=request.args.get("status") or None,
            salesperson_id=request.args.get("vendedor_id") or None,
            **date_range(),
        )
        page, pagination = paginate(packages)
        return jsonify({"marketing": [output.package(p) for p in page], "pagination": pagination}), 200

    @app.route("/marketing", methods=["POST"])
    def create_package():
        package = processor.create_package(current_auth(), request_json())
        return jsonify(output.package(package)), 201

    @app.route("/marketing/<package_id>/aprovar", methods=["POST"])
    def approve_package(package_id):
        package = processor.approve_package(current_auth(), package_id)
        return jsonify(output.package(package)), 200

    @app.route("/marketing/<package_id>/comissao", methods=["GET"])
    def package_commission(package_id):
        first_month = request.args.get("continuidade", "false").lower() != "true"
        resolution = processor.package_commission(current_auth(), package_id, first_month=first_month)
        return jsonify(output.resolution(resolution)), 200

    @app.route("/marketing/<package_id>", methods=["DELETE"])
    def delete_package(package_id):
        processor.delete_package(current_auth(), package_id)
        return jsonify({"message": "Package deleted successfully"}), 200

    # -- Reports and users ----------------------------------------------------

    @app.route("/relatorios/vendedores", methods=["GET"])
    def salesperson_report():
        first_month = request.args.get("continuidade", "false").lower() != "true"
        reports = processor.salesperson_report(current_auth(), first_month=first_month, **date_range())
        return jsonify({"vendedores": output.salesperson_report(reports)}), 200

    @app.route("/usuarios", methods=["GET"])
    def list_users():
        users = processor.list_users(current_auth(), role=request.args.get("perfil") or None)
        return jsonify({"usuarios": [output.user(u) for u in users]}), 200

    @app.route("/usuarios", methods=["POST"])
    def create_user():
        user = processor.create_user(current_auth(), request_json())
        return jsonify(output.user(user)), 201

    @app.route("/usuarios/<user_id>", methods=["PUT"])
    def update_user(user_id):
        user = processor.update_user(current_auth(), user_id, request_json())
        return jsonify(output.user(user)), 200


app = create_app()


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=app.config["PROCESSOR"].settings.port, debug=False)
