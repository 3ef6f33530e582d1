# dreamsaver/crud/product.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from dreamsaver.models.product import Product
from typing import Optional
import uuid


async def get_product(db: AsyncSession, product_id: uuid.UUID) -> Optional[Product]:
    result = await db.execute(select(Product).where(Product.id == product_id))
    return result.scalar_one_or_none()
