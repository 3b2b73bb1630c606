from __future__ import annotations

from ..extensions import db
from kbpos.time_utils import to_utc_z

PRODUCT_CATEGORIES = (
    "Kebab Daging",
    "Kebab Ayam",
    "Kebab Vegetarian",
    "Kebab Jumbo Mix",
    "Minuman",
    "Paket Hemat",
    "Lainnya",
)


class Product(db.Model):
    """
    Menu item.

    LEDGER: total_sold is the running count of units sold across all
    persisted sales. It is owned by ledger_service and only ever changes
    through an atomic increment; catalog writes never touch it.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(1000), nullable=False)

    price = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)
    discount_price = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)

    category = db.Column(db.String(32), nullable=False)
    tags = db.Column(db.JSON, nullable=False, default=list)
    ingredients = db.Column(db.JSON, nullable=False, default=list)

    image_url = db.Column(db.String(500), nullable=False, default="no-image.jpg")
    is_available = db.Column(db.Boolean, nullable=False, default=True)

    # No CHECK >= 0: a negative value is reported by the ledger as drift
    # instead of failing the write that exposed it.
    total_sold = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "discount_price": self.discount_price,
            "category": self.category,
            "tags": list(self.tags or []),
            "ingredients": list(self.ingredients or []),
            "image_url": self.image_url,
            "is_available": self.is_available,
            "total_sold": self.total_sold,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
