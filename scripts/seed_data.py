from __future__ import annotations

import argparse
from decimal import Decimal
from uuid import uuid4

from services.api.app.db.database import session_scope
from services.api.app.db.init_db import init_db
from services.api.app.db.models import CartItem, Product

CATALOGUE = (
    ("Wooden Rattle", "Hand-finished neem wood rattle", "100.00", 40),
    ("Soft Stacking Blocks", "Set of 6 washable fabric blocks", "349.00", 25),
    ("Musical Crib Mobile", "Plays 12 lullabies, battery operated", "1299.00", 8),
    ("Silicone Teething Ring", "BPA-free, fridge safe", "199.00", 60),
    ("Bath Time Ducks", "Pack of 4 squeaky ducks", "149.00", 35),
)


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed felixmart products for local dev")
    parser.add_argument("--user-id", default=None, help="Also put two products in this cart")
    args = parser.parse_args()

    init_db()

    with session_scope() as db:
        existing = {name for (name,) in db.query(Product.name).all()}
        products: list[Product] = []
        for name, description, price, stock in CATALOGUE:
            if name in existing:
                continue
            product = Product(
                id=uuid4().hex,
                name=name,
                description=description,
                price=Decimal(price),
                stock_quantity=stock,
            )
            db.add(product)
            products.append(product)

        if args.user_id and products:
            for product in products[:2]:
                db.add(
                    CartItem(
                        id=uuid4().hex, user_id=args.user_id, product_id=product.id, quantity=1
                    )
                )

    print(f"Seeded products={len(products)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
