"""
Import and export of the legacy single-document store.

The previous system kept everything in one JSON file shaped like::

    {
      "products": [ {id, name, sku, category, price, quantity, imageUrl, createdAt} ],
      "sales": [ {id, items: [{productId, name, sku, qty, price, lineTotal}],
                  totalAmount, createdAt, staffId, staffUsername} ],
      "users": [ {id, username, passwordHash, role, createdAt} ]
    }

Exports use the same shape so a backup can be imported again.
"""
import json
from datetime import datetime, timezone
from typing import Union

from sqlmodel import Session, select

from database.models import Product, Sale, SaleItem, User, utcnow
from services.auth_service import ROLES
from utils.logger import get_logger

logger = get_logger(__name__)

COLLECTIONS = ("products", "sales", "users")


class LegacyImportError(Exception):
    pass


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat().replace("+00:00", "Z")


def _parse_datetime(value) -> datetime:
    if not value:
        return utcnow()
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# --- Export ---

def export_document(session: Session) -> dict:
    products = session.exec(select(Product).order_by(Product.created_at)).all()
    sales = session.exec(select(Sale).order_by(Sale.created_at)).all()
    users = session.exec(select(User).order_by(User.created_at)).all()

    return {
        "generatedAt": _iso(utcnow()),
        "products": [
            {
                "id": p.id,
                "name": p.name,
                "sku": p.sku,
                "category": p.category,
                "price": p.price,
                "quantity": p.quantity,
                "imageUrl": p.image_url,
                "createdAt": _iso(p.created_at),
            }
            for p in products
        ],
        "sales": [
            {
                "id": s.id,
                "items": [
                    {
                        "productId": i.product_id,
                        "name": i.name,
                        "sku": i.sku,
                        "qty": i.qty,
                        "price": i.price,
                        "lineTotal": i.line_total,
                    }
                    for i in s.items
                ],
                "totalAmount": s.total_amount,
                "createdAt": _iso(s.created_at),
                "staffId": s.staff_id,
                "staffUsername": s.staff_username,
            }
            for s in sales
        ],
        "users": [
            {
                "id": u.id,
                "username": u.username,
                "passwordHash": u.password_hash,
                "role": u.role,
                "createdAt": _iso(u.created_at),
            }
            for u in users
        ],
    }


# --- Import ---

def load_legacy_document(raw: Union[str, bytes]) -> dict:
    """
    Parse a legacy document. A missing, corrupt or wrongly shaped file is an
    error; it is never replaced by an empty store.
    """
    try:
        doc = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise LegacyImportError(f"Legacy document is not valid JSON: {e}") from e

    if not isinstance(doc, dict):
        raise LegacyImportError("Legacy document must be a JSON object")
    for key in COLLECTIONS:
        if not isinstance(doc.get(key, []), list):
            raise LegacyImportError(f"'{key}' must be a list")
    return doc


def load_legacy_file(path: str) -> dict:
    try:
        with open(path, "rb") as f:
            raw = f.read()
    except OSError as e:
        raise LegacyImportError(f"Cannot read {path}: {e}") from e
    return load_legacy_document(raw)


def _required_str(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"{key} must be a non-empty string")
    return value


def _import_product(session: Session, data: dict) -> bool:
    product_id = _required_str(data, "id")
    name = _required_str(data, "name")
    if session.get(Product, product_id):
        return False
    if data.get("sku") and session.exec(select(Product).where(Product.sku == data["sku"])).first():
        raise ValueError(f"sku {data['sku']} already used by another product")

    price = float(data["price"])
    quantity = int(data["quantity"])
    if price < 0 or quantity < 0:
        raise ValueError("price and quantity must be non-negative")

    product = Product(
        id=product_id,
        name=name,
        category=data.get("category") or "General",
        price=price,
        quantity=quantity,
        image_url=data.get("imageUrl") or "",
        created_at=_parse_datetime(data.get("createdAt")),
    )
    if data.get("sku"):
        product.sku = data["sku"]
    session.add(product)
    return True


def _import_user(session: Session, data: dict) -> bool:
    user_id = _required_str(data, "id")
    username = _required_str(data, "username")
    password_hash = _required_str(data, "passwordHash")
    role = data.get("role") or "staff"
    if role not in ROLES:
        raise ValueError(f"Unknown role {role}")

    if session.get(User, user_id):
        return False
    if session.exec(select(User).where(User.username == username)).first():
        raise ValueError(f"username {username} already exists")

    session.add(User(
        id=user_id,
        username=username,
        password_hash=password_hash,
        role=role,
        created_at=_parse_datetime(data.get("createdAt")),
    ))
    return True


def _import_sale(session: Session, data: dict) -> bool:
    sale_id = _required_str(data, "id")
    if session.get(Sale, sale_id):
        return False

    sale = Sale(
        id=sale_id,
        created_at=_parse_datetime(data.get("createdAt")),
        staff_id=data.get("staffId"),
        staff_username=data.get("staffUsername"),
    )
    for position, item in enumerate(data["items"]):
        qty = int(item["qty"])
        price = float(item["price"])
        sale.items.append(SaleItem(
            position=position,
            product_id=_required_str(item, "productId"),
            name=item.get("name") or "",
            sku=item.get("sku") or "",
            qty=qty,
            price=price,
            line_total=round(float(item.get("lineTotal", price * qty)), 2),
        ))
    # Recompute so the stored total always matches its lines
    sale.total_amount = round(sum(i.line_total for i in sale.items), 2)
    session.add(sale)
    return True


def import_legacy_document(session: Session, doc: dict) -> dict:
    """
    Insert every record whose id is not already stored. Bad records are
    reported in `errors` and skipped; the rest commit together.
    """
    importers = {"products": _import_product, "users": _import_user, "sales": _import_sale}
    results = {"added": {}, "skipped": {}, "errors": []}

    for key in COLLECTIONS:
        added = skipped = 0
        for index, record in enumerate(doc.get(key, [])):
            try:
                if not isinstance(record, dict):
                    raise ValueError("record must be an object")
                # Importers validate fully before session.add, so a bad record adds nothing
                if importers[key](session, record):
                    added += 1
                else:
                    skipped += 1
            except (KeyError, TypeError, ValueError) as e:
                results["errors"].append(f"{key}[{index}]: {e!r}")
        results["added"][key] = added
        results["skipped"][key] = skipped

    session.commit()
    logger.info(f"Legacy import finished: added={results['added']} skipped={results['skipped']} errors={len(results['errors'])}")
    return results
