# backend/retailpos/services/products_service.py
"""
Products Service

Catalog maintenance for products, categories and suppliers.

QUANTITY: never written here directly. A product is created with
quantity 0 and any opening quantity is posted through the inventory ledger
as an 'adjustment' movement, so the ledger sum invariant holds from the
first row.
"""
from __future__ import annotations

import logging
import re

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError, ValidationFailedError
from ..extensions import db
from ..models import Category, Product, PurchaseOrder, SaleItem, StockMovement, Supplier
from ..models.inventory import MOVEMENT_ADJUSTMENT
from ..validation import ModelValidationPolicy, enforce_rules_contact, enforce_rules_product, validate_payload
from .concurrency import atomic
from .inventory_service import apply_stock_delta, get_product

logger = logging.getLogger(__name__)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "sku", "barcode", "description",
        "category_id", "supplier_id",
        "cost_price", "selling_price", "currency",
        "quantity", "min_stock_level", "track_stock", "is_active", "image_url",
    },
    required_on_create={"name", "sku", "cost_price", "selling_price"},
)

# quantity is only accepted on create (as opening stock)
PRODUCT_MUTABLE_FIELDS = PRODUCT_POLICY.writable_fields - {"quantity"}

STOCK_STATUSES = ("low", "out")


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _check_references(patch: dict) -> None:
    category_id = patch.get("category_id")
    if category_id and db.session.get(Category, category_id) is None:
        raise NotFoundError("Category not found", details={"category_id": category_id})
    supplier_id = patch.get("supplier_id")
    if supplier_id and db.session.get(Supplier, supplier_id) is None:
        raise NotFoundError("Supplier not found", details={"supplier_id": supplier_id})


def _check_sku_unique(sku: str, *, exclude_id: str | None = None) -> None:
    q = db.session.query(Product).filter(Product.sku == sku)
    if exclude_id:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("SKU already exists", details={"sku": sku})


def list_products(
    *,
    search: str | None = None,
    category_id: str | None = None,
    supplier_id: str | None = None,
    stock_status: str | None = None,
    include_inactive: bool = True,
) -> list[Product]:
    q = db.session.query(Product)

    if search:
        term = f"%{search.strip()}%"
        q = q.filter(or_(
            Product.name.ilike(term),
            Product.sku.ilike(term),
            Product.barcode.ilike(term),
        ))
    if category_id:
        q = q.filter(Product.category_id == category_id)
    if supplier_id:
        q = q.filter(Product.supplier_id == supplier_id)
    if stock_status:
        if stock_status not in STOCK_STATUSES:
            raise ValidationFailedError(
                "stock_status must be 'low' or 'out'", details={"field": "stock_status"}
            )
        q = q.filter(Product.track_stock.is_(True))
        if stock_status == "low":
            q = q.filter(Product.quantity <= Product.min_stock_level)
        else:
            q = q.filter(Product.quantity <= 0)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))

    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product_by_barcode(barcode: str) -> Product:
    product = db.session.query(Product).filter_by(barcode=barcode).first() if barcode else None
    if product is None:
        raise NotFoundError("Product not found", details={"barcode": barcode})
    return product


def create_product(*, payload: dict, user_id: str) -> Product:
    """
    Validate and insert a product; a positive `quantity` becomes opening stock.

    Raises:
        ValidationFailedError, NotFoundError (category/supplier), ConflictError (SKU)
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    opening_quantity = patch.pop("quantity", None) or 0

    with atomic():
        _check_references(patch)
        _check_sku_unique(patch["sku"])

        product = Product(quantity=0)
        apply_product_patch(product, patch)
        db.session.add(product)
        db.session.flush()

        if opening_quantity:
            apply_stock_delta(
                product_id=product.id,
                delta=opening_quantity,
                movement_type=MOVEMENT_ADJUSTMENT,
                reason="Opening stock",
                user_id=user_id,
            )

    logger.info("Created product %s (%s) with opening stock %d", product.sku, product.id, opening_quantity)
    return product


def update_product(*, product_id: str, payload: dict) -> Product:
    """Partial update; quantity changes must go through adjust-stock."""
    if isinstance(payload, dict) and "quantity" in payload:
        raise ValidationFailedError(
            "quantity cannot be edited directly; use a stock adjustment",
            details={"field": "quantity"},
        )
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    with atomic():
        product = get_product(product_id)
        _check_references(patch)
        if "sku" in patch:
            _check_sku_unique(patch["sku"], exclude_id=product.id)
        apply_product_patch(product, patch)

    return product


def delete_product(*, product_id: str) -> None:
    """
    Hard delete for products that were never sold or moved.
    Products with history must be deactivated instead (is_active=false).
    """
    with atomic():
        product = get_product(product_id)
        has_history = (
            db.session.query(SaleItem.id).filter_by(product_id=product.id).first() is not None
            or db.session.query(StockMovement.id).filter_by(product_id=product.id).first() is not None
        )
        if has_history:
            raise ConflictError(
                "Product has sales or stock history; deactivate it instead",
                details={"product_id": product.id},
            )
        db.session.delete(product)

    logger.info("Deleted product %s", product_id)


# -- CATEGORIES / SUPPLIERS --

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "slug", "description"},
    required_on_create={"name"},
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "contact_person", "email", "phone", "address", "city", "country"},
    required_on_create={"name"},
)


def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def _normalize_slug(raw: str) -> str:
    slug = _slugify(raw)
    if not slug:
        raise ValidationFailedError("slug must contain letters or digits", details={"field": "slug"})
    return slug


def _check_slug_unique(slug: str, *, exclude_id: str | None = None) -> None:
    q = db.session.query(Category).filter(Category.slug == slug)
    if exclude_id:
        q = q.filter(Category.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("Category slug already exists", details={"slug": slug})


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc(), Category.id.asc()).all()


def get_category(category_id: str) -> Category:
    category = db.session.get(Category, category_id) if category_id else None
    if category is None:
        raise NotFoundError("Category not found", details={"category_id": category_id})
    return category


def create_category(*, name: str, description: str | None = None, slug: str | None = None) -> Category:
    """The slug defaults to the slugified name and must be unique."""
    payload = {"name": name, "description": description}
    if slug is not None:
        payload["slug"] = slug
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
    patch["slug"] = _normalize_slug(patch.get("slug") or patch["name"])

    with atomic():
        _check_slug_unique(patch["slug"])
        category = Category(**patch)
        db.session.add(category)

    logger.info("Created category %s (%s)", category.slug, category.id)
    return category


def update_category(*, category_id: str, payload: dict) -> Category:
    """Renaming keeps the existing slug unless a new one is supplied."""
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
    if "slug" in patch:
        patch["slug"] = _normalize_slug(patch["slug"])

    with atomic():
        category = get_category(category_id)
        if "slug" in patch:
            _check_slug_unique(patch["slug"], exclude_id=category.id)
        for k, v in patch.items():
            setattr(category, k, v)

    return category


def delete_category(*, category_id: str) -> None:
    with atomic():
        category = get_category(category_id)
        if db.session.query(Product.id).filter_by(category_id=category.id).first() is not None:
            raise ConflictError(
                "Category still has products; move them first",
                details={"category_id": category.id},
            )
        db.session.delete(category)

    logger.info("Deleted category %s", category_id)


def list_suppliers(*, search: str | None = None) -> list[Supplier]:
    q = db.session.query(Supplier)
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(or_(
            Supplier.name.ilike(term),
            Supplier.contact_person.ilike(term),
            Supplier.email.ilike(term),
        ))
    return q.order_by(Supplier.name.asc(), Supplier.id.asc()).all()


def get_supplier(supplier_id: str) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id) if supplier_id else None
    if supplier is None:
        raise NotFoundError("Supplier not found", details={"supplier_id": supplier_id})
    return supplier


def create_supplier(*, name: str, **fields) -> Supplier:
    patch = validate_payload(
        model=Supplier, payload={"name": name, **fields}, policy=SUPPLIER_POLICY, partial=False,
    )
    enforce_rules_contact(patch)

    with atomic():
        supplier = Supplier(**patch)
        db.session.add(supplier)

    logger.info("Created supplier %s (%s)", supplier.name, supplier.id)
    return supplier


def update_supplier(*, supplier_id: str, payload: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
    enforce_rules_contact(patch)

    with atomic():
        supplier = get_supplier(supplier_id)
        for k, v in patch.items():
            setattr(supplier, k, v)

    return supplier


def delete_supplier(*, supplier_id: str) -> None:
    """Suppliers referenced by products or purchase orders are kept."""
    with atomic():
        supplier = get_supplier(supplier_id)
        in_use = (
            db.session.query(Product.id).filter_by(supplier_id=supplier.id).first() is not None
            or db.session.query(PurchaseOrder.id).filter_by(supplier_id=supplier.id).first() is not None
        )
        if in_use:
            raise ConflictError(
                "Supplier is referenced by products or purchase orders",
                details={"supplier_id": supplier.id},
            )
        db.session.delete(supplier)

    logger.info("Deleted supplier %s", supplier_id)
