"""API routes for the product catalog"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from invoicehub.models.database import get_db
from invoicehub.models.document import CompanyTag, Product
from invoicehub.services.db_service import DatabaseService
from invoicehub.services.document_service import products_for_company

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=List[Product])
async def list_products(company: Optional[CompanyTag] = None, db: AsyncSession = Depends(get_db)):
    """Catalog, optionally only the products offered under ``company``"""
    products = await DatabaseService.list_products(db=db)
    if company:
        return products_for_company(products, company)
    return products


@router.put("/{product_id}", response_model=Product)
async def save_product(product_id: str, product: Product, db: AsyncSession = Depends(get_db)):
    if product.id != product_id:
        raise HTTPException(status_code=400, detail="Product id does not match the path")
    return await DatabaseService.save_product(product, db=db)


@router.delete("/{product_id}")
async def delete_product(product_id: str, db: AsyncSession = Depends(get_db)):
    if not await DatabaseService.delete_product(product_id, db=db):
        raise HTTPException(status_code=404, detail=f"Product {product_id} not found")
    return {"deleted": product_id}
