#/backend/pantry_rewards/services/supermarket_service.py
"""
Supermarket catalogue: partner stores and the products they stock.
Only products with stock left are listed.
"""

from typing import List, Optional
import logging
import uuid

from sqlalchemy.orm import Session, joinedload

from pantry_rewards.core.exceptions import ProductNotFoundError, SupermarketNotFoundError, ValidationError
from pantry_rewards.models.database import Supermarket, SupermarketProduct

logger = logging.getLogger(__name__)


class SupermarketService:
    def __init__(self, db: Session):
        self.db = db

    def list_supermarkets(self) -> List[Supermarket]:
        return self.db.query(Supermarket).order_by(Supermarket.name.asc()).all()

    def get_supermarket(self, supermarket_id: uuid.UUID) -> Supermarket:
        supermarket = self.db.query(Supermarket).filter(Supermarket.id == supermarket_id).first()
        if not supermarket:
            raise SupermarketNotFoundError(f"Supermarket {supermarket_id} not found")
        return supermarket

    def get_product(self, product_id: uuid.UUID) -> SupermarketProduct:
        product = (
            self.db.query(SupermarketProduct)
            .options(joinedload(SupermarketProduct.supermarket))
            .filter(SupermarketProduct.id == product_id)
            .first()
        )
        if not product:
            raise ProductNotFoundError(f"Product {product_id} not found")
        return product

    def list_products(self, supermarket_id: uuid.UUID, category: Optional[str] = None) -> List[SupermarketProduct]:
        """In-stock products of one store, optionally one category"""
        self.get_supermarket(supermarket_id)

        query = self.db.query(SupermarketProduct).filter(
            SupermarketProduct.supermarket_id == supermarket_id,
            SupermarketProduct.stock > 0,
        )
        if category:
            query = query.filter(SupermarketProduct.category == category)
        return query.order_by(SupermarketProduct.name.asc()).all()

    def search_products(self, query: str) -> List[SupermarketProduct]:
        """Case-insensitive name search across every store"""
        term = (query or "").strip()
        if not term:
            raise ValidationError("Search query is required")

        products = (
            self.db.query(SupermarketProduct)
            .options(joinedload(SupermarketProduct.supermarket))
            .filter(
                SupermarketProduct.name.ilike(f"%{term}%"),
                SupermarketProduct.stock > 0,
            )
            .order_by(SupermarketProduct.name.asc())
            .all()
        )
        logger.info(f"Product search '{term}' matched {len(products)} products")
        return products
