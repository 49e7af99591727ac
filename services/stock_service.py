import threading
from typing import List
from sqlalchemy import func, update
from sqlmodel import Session, select

from database.models import Product, Sale, SaleItem, User
from utils.logger import get_logger

logger = get_logger(__name__)


class SaleError(ValueError):
    pass


class EmptySaleError(SaleError):
    pass


class ProductNotFoundError(SaleError):
    pass


class InvalidQuantityError(SaleError):
    pass


class InsufficientStockError(SaleError):
    pass


class StockService:
    def __init__(self):
        # SQLite allows one writer at a time; sales from this process queue here
        self._sale_lock = threading.Lock()

    def process_sale(self, session: Session, user: User, items_data: List[dict]) -> Sale:
        """
        Validates every requested line, then deducts stock and records the Sale.
        items_data expected format: [{"product_id": "...", "qty": 2}, ...]

        Nothing is deducted unless all lines pass. Each deduction is a guarded
        UPDATE (quantity >= qty), so a concurrent sale that drained the stock
        after validation makes this one roll back instead of going negative.
        """
        with self._sale_lock:
            return self._process_sale(session, user, items_data)

    def _process_sale(self, session: Session, user: User, items_data: List[dict]) -> Sale:
        if not items_data:
            raise EmptySaleError("items are required")

        # --- 1. Validate all lines ---
        lines = []
        requested = {}
        for item in items_data:
            p_id = item["product_id"]
            qty = item["qty"]

            product = session.get(Product, p_id)
            if not product:
                raise ProductNotFoundError(f"Product {p_id} not found")
            if qty <= 0:
                raise InvalidQuantityError("Quantity must be > 0")

            # Same product on several lines draws from one stock count
            requested[p_id] = requested.get(p_id, 0) + qty
            if product.quantity < requested[p_id]:
                raise InsufficientStockError(f"Insufficient stock for {product.name}")

            lines.append((product, qty))

        # --- 2. Deduct stock and build the sale ---
        sale = Sale(staff_id=user.id, staff_username=user.username)
        try:
            for position, (product, qty) in enumerate(lines):
                result = session.exec(
                    update(Product)
                    .where(Product.id == product.id, Product.quantity >= qty)
                    .values(quantity=Product.quantity - qty)
                )
                if result.rowcount != 1:
                    raise InsufficientStockError(f"Insufficient stock for {product.name}")

                sale.items.append(SaleItem(
                    position=position,
                    product_id=product.id,
                    name=product.name,
                    sku=product.sku,
                    qty=qty,
                    price=product.price,
                    line_total=round(product.price * qty, 2),
                ))

            sale.total_amount = round(sum(i.line_total for i in sale.items), 2)
            session.add(sale)
            session.commit()
        except InsufficientStockError:
            session.rollback()
            logger.warning(f"Sale by {user.username} rolled back: stock changed concurrently")
            raise
        except Exception:
            session.rollback()
            logger.exception(f"Failed to record sale by {user.username}")
            raise

        session.refresh(sale)
        logger.info(f"Sale {sale.id} recorded by {user.username}: {len(sale.items)} line(s), total {sale.total_amount:.2f}")
        return sale

    def get_stats(self, session: Session) -> dict:
        total_products = session.exec(select(func.count(Product.id))).one()
        total_units = session.exec(select(func.coalesce(func.sum(Product.quantity), 0))).one()
        stock_value = session.exec(select(func.coalesce(func.sum(Product.quantity * Product.price), 0.0))).one()
        earnings = session.exec(select(func.coalesce(func.sum(Sale.total_amount), 0.0))).one()

        return {
            "total_products": total_products,
            "total_stock_units": int(total_units),
            "total_stock_value": round(float(stock_value), 2),
            "total_earnings": round(float(earnings), 2),
        }
