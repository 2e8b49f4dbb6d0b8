from __future__ import annotations

from typing import Any, Dict, List, Optional

from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..alerts.delivery import AlertSink
from ..domain.expiry import EXPIRED, EXPIRING_SOON
from ..errors import ProductValidationError, StoreError
from ..logging import get_logger
from ..paths import find_project_root
from ..service import InventoryService, build_notifier, scan_text
from ..store.db import InventoryDatabase


LOG = get_logger("api")

STATUS_CHOICES = ("all", EXPIRED, EXPIRING_SOON)


def _require_user(request: Request) -> str:
    user_id = (request.query_params.get("user_id") or "").strip()
    if not user_id:
        raise HTTPException(status_code=400, detail="user_id is required")
    return user_id


async def _json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Body must be JSON") from exc
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Body must be a JSON object")
    return body


def create_app(
    root_dir: Optional[str] = None,
    *,
    db: Optional[InventoryDatabase] = None,
    sink: Optional[AlertSink] = None,
    allow_origins: Optional[List[str]] = None,
) -> Starlette:
    """Create a Starlette app exposing extraction, products and notifications."""

    project_root = find_project_root(root_dir)
    db = db or InventoryDatabase(root_dir=project_root)
    service = InventoryService(db, dotenv_dir=project_root)
    notifier = build_notifier(db, dotenv_dir=project_root, sink=sink)

    async def health(_: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "db_path": db.db_path})

    async def extract(request: Request) -> JSONResponse:
        body = await _json_body(request)
        text = body.get("text")
        if not isinstance(text, str):
            raise HTTPException(status_code=400, detail="text must be a string")
        return JSONResponse(scan_text(text).to_dict())

    async def list_products(request: Request) -> JSONResponse:
        user_id = _require_user(request)
        status = request.query_params.get("status") or "all"
        if status not in STATUS_CHOICES:
            raise HTTPException(status_code=400, detail=f"status must be one of {', '.join(STATUS_CHOICES)}")
        products = service.list_products(user_id, status=status)
        return JSONResponse({"items": [p.to_dict() for p in products], "total": len(products)})

    async def add_product(request: Request) -> JSONResponse:
        body = await _json_body(request)
        user_id = (body.get("user_id") or "").strip() if isinstance(body.get("user_id"), str) else ""
        if not user_id:
            raise HTTPException(status_code=400, detail="user_id is required")
        try:
            product = service.add_product(
                user_id,
                name=body.get("name") or "",
                category=body.get("category") or "",
                expiry_date=body.get("expiry_date"),
                reminder_days=body.get("reminder_days"),
                custom_category=body.get("custom_category"),
            )
        except ProductValidationError as exc:
            return JSONResponse({"detail": str(exc), "errors": exc.errors}, status_code=400)
        return JSONResponse(product.to_dict(), status_code=201)

    async def delete_product(request: Request) -> JSONResponse:
        product_id = str(request.path_params["product_id"])
        if not db.delete_product(product_id):
            raise HTTPException(status_code=404, detail="Product not found")
        return JSONResponse({"deleted": product_id})

    async def list_notifications(request: Request) -> JSONResponse:
        user_id = _require_user(request)
        items = db.query_notifications(user_id, notified=True)
        return JSONResponse({"items": [n.to_dict() for n in items], "total": len(items)})

    async def unread_count(request: Request) -> JSONResponse:
        user_id = _require_user(request)
        return JSONResponse({"unread": await notifier.unread_count(user_id)})

    async def mark_read(request: Request) -> JSONResponse:
        notification_id = str(request.path_params["notification_id"])
        if not await notifier.mark_read(notification_id):
            raise HTTPException(status_code=404, detail="Notification not found")
        return JSONResponse({"read": notification_id})

    async def mark_all_read(request: Request) -> JSONResponse:
        user_id = _require_user(request)
        return JSONResponse({"updated": await notifier.mark_all_read(user_id)})

    async def run_check(request: Request) -> JSONResponse:
        body = await _json_body(request)
        user_id = body.get("user_id")
        if not isinstance(user_id, str) or not user_id.strip():
            raise HTTPException(status_code=400, detail="user_id is required")
        created = await notifier.check_expiring_products(user_id.strip())
        return JSONResponse({"created": [n.to_dict() for n in created]})

    async def store_unavailable(_: Request, exc: Exception) -> JSONResponse:
        LOG.error(f"Store error while serving request: {exc}")
        return JSONResponse({"detail": "Inventory store unavailable"}, status_code=503)

    routes = [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/extract", extract, methods=["POST"]),
        Route("/api/products", list_products, methods=["GET"]),
        Route("/api/products", add_product, methods=["POST"]),
        Route("/api/products/{product_id:int}", delete_product, methods=["DELETE"]),
        Route("/api/notifications", list_notifications, methods=["GET"]),
        Route("/api/notifications/unread_count", unread_count, methods=["GET"]),
        Route("/api/notifications/read_all", mark_all_read, methods=["POST"]),
        Route("/api/notifications/{notification_id:int}/read", mark_read, methods=["POST"]),
        Route("/api/check", run_check, methods=["POST"]),
    ]

    app = Starlette(debug=False, routes=routes, exception_handlers={StoreError: store_unavailable})
    app.state.notifier = notifier

    origins = allow_origins or ["http://localhost:5173", "http://127.0.0.1:5173"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if "*" in origins else origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


__all__ = ["create_app"]
