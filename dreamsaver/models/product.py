# dreamsaver/models/product.py
import uuid
from sqlalchemy import Column, String, Numeric, Uuid
from dreamsaver.core.database import Base


class Product(Base):
    """Read model of the store catalog; only the price matters here."""

    __tablename__ = "products"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(length=255), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    store_id = Column(String(length=64), nullable=True)

    def __repr__(self):
        return f"<Product name={self.name} price={self.price}>"
