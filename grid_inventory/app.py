"""Flask application exposing the inventory engine as a JSON API."""
from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Flask, Response, current_app, jsonify, request
from pydantic import ValidationError

from .config import Settings, get_settings
from .errors import (
    CellOccupied,
    ImportParseError,
    InvalidFormat,
    InvalidState,
    InventoryError,
    OutOfBounds,
    ProductNotFound,
)
from .inventory import Inventory
from .models import Product
from .schemas import (
    HealthStatus,
    ImportSummary,
    PositionUpdate,
    ProductCreate,
    ProductFields,
    UndoResult,
)
from .storage import KeyValueStore, open_store

_ERROR_STATUS = {
    ProductNotFound: 404,
    InvalidState: 409,
    CellOccupied: 409,
    OutOfBounds: 400,
    ImportParseError: 400,
    InvalidFormat: 400,
}

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _json_error(message: str, status: int = 400, *, code: Optional[str] = None) -> Any:
    payload: Dict[str, Any] = {"error": message}
    if code:
        payload["code"] = code
    return jsonify(payload), status


def _parse_flag(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    return None


def _get_payload() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        return payload
    return request.form.to_dict()


def _inventory() -> Inventory:
    return current_app.extensions["grid_inventory"]


def _product_payload(inventory: Inventory, product: Product) -> Dict[str, Any]:
    payload = product.to_dict()
    status = inventory.expiry_status(product)
    payload["expiry"] = {
        "tier": status.tier.value,
        "date": None if status.expiry is None else status.expiry.isoformat(),
        "days_left": status.days_left,
    }
    return payload


def create_app(
    settings: Settings | None = None,
    *,
    storage: KeyValueStore | None = None,
) -> Flask:
    settings = settings or get_settings()
    app = Flask(__name__)
    app.config["APP_NAME"] = settings.app_name
    inventory = Inventory(storage or open_store(settings), settings=settings)
    app.extensions["grid_inventory"] = inventory

    @app.errorhandler(InventoryError)
    def handle_inventory_error(exc: InventoryError) -> Any:
        status = 400
        for error_type, error_status in _ERROR_STATUS.items():
            if isinstance(exc, error_type):
                status = error_status
                break
        return _json_error(str(exc), status, code=exc.code)

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError) -> Any:
        return _json_error(
            "; ".join(error["msg"] for error in exc.errors()),
            400,
            code="invalid_payload",
        )

    @app.get("/api/health")
    def health_check() -> Any:
        status = HealthStatus(
            environment=settings.environment, products=len(_inventory().products)
        )
        return jsonify(status.model_dump())

    @app.get("/api/products")
    def list_products() -> Any:
        inventory = _inventory()
        try:
            products = inventory.search(
                request.args.get("q", ""),
                status=request.args.get("status") or None,
                placed=_parse_flag(request.args.get("placed")),
            )
        except ValueError:
            return _json_error("Unknown expiry status", 400, code="invalid_status")
        return jsonify([_product_payload(inventory, product) for product in products])

    @app.post("/api/products")
    def add_product() -> Any:
        inventory = _inventory()
        payload = ProductCreate.model_validate(_get_payload())
        position = None
        if payload.row is not None or payload.col is not None:
            position = (payload.row, payload.col)
        product = inventory.add(position=position, **payload.as_kwargs(fill=True))
        if product is None:
            return jsonify({"product": None})
        return jsonify({"product": _product_payload(inventory, product)}), 201

    @app.get("/api/products/<string:product_id>")
    def get_product(product_id: str) -> Any:
        inventory = _inventory()
        return jsonify(_product_payload(inventory, inventory.get(product_id)))

    @app.put("/api/products/<string:product_id>")
    def update_product(product_id: str) -> Any:
        inventory = _inventory()
        payload = ProductFields.model_validate(_get_payload())
        product = inventory.edit(product_id, **payload.as_kwargs())
        return jsonify(_product_payload(inventory, product))

    @app.delete("/api/products/<string:product_id>")
    def delete_product(product_id: str) -> Any:
        _inventory().delete(product_id)
        return "", 204

    @app.post("/api/products/<string:product_id>/position")
    def move_product(product_id: str) -> Any:
        inventory = _inventory()
        payload = PositionUpdate.model_validate(_get_payload())
        product = inventory.move(product_id, payload.row, payload.col)
        return jsonify(_product_payload(inventory, product))

    @app.post("/api/products/<string:product_id>/pick")
    def pick_product(product_id: str) -> Any:
        inventory = _inventory()
        return jsonify(_product_payload(inventory, inventory.pick(product_id)))

    @app.post("/api/products/<string:product_id>/return")
    def return_product(product_id: str) -> Any:
        inventory = _inventory()
        return jsonify(_product_payload(inventory, inventory.return_product(product_id)))

    @app.get("/api/grid")
    def grid_view() -> Any:
        return jsonify(_inventory().grid_snapshot())

    @app.put("/api/grid/<int:row>/<int:col>")
    def save_cell(row: int, col: int) -> Any:
        inventory = _inventory()
        payload = ProductFields.model_validate(_get_payload())
        product = inventory.save_cell(row, col, **payload.as_kwargs(fill=True))
        if product is None:
            return jsonify({"product": None})
        return jsonify({"product": _product_payload(inventory, product)})

    @app.post("/api/undo")
    def undo() -> Any:
        inventory = _inventory()
        undone = inventory.undo()
        result = UndoResult(undone=undone, remaining=inventory.undo_depth)
        return jsonify(result.model_dump())

    @app.get("/api/export")
    def export_products() -> Response:
        inventory = _inventory()
        response = Response(inventory.export_json(), mimetype="application/json")
        response.headers["Content-Disposition"] = (
            f"attachment; filename={inventory.export_filename()}"
        )
        return response

    @app.post("/api/import")
    def import_products() -> Any:
        confirmed = _parse_flag(request.args.get("confirm") or request.form.get("confirm"))
        if not confirmed:
            return _json_error(
                "Import replaces every product; resend with confirm=1",
                400,
                code="confirmation_required",
            )
        upload = request.files.get("file")
        if upload is not None:
            try:
                data = upload.read()
            finally:
                upload.close()
        else:
            data = request.get_data()
        result = _inventory().import_json(data)
        summary = ImportSummary(
            imported=len(result.products),
            dropped=result.dropped,
            reassigned_ids=result.reassigned_ids,
            unplaced=result.unplaced,
        )
        return jsonify(summary.model_dump())

    @app.get("/api/stats")
    def statistics() -> Any:
        inventory = _inventory()
        groups = {
            tier: [_product_payload(inventory, product) for product in products]
            for tier, products in inventory.expiry_groups().items()
        }
        return jsonify({"statistics": inventory.statistics(), "expiry": groups})

    return app


__all__ = ["create_app"]
