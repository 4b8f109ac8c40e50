"""API routes for CRM customers"""

from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from invoicehub.models.customer import Customer
from invoicehub.models.database import get_db
from invoicehub.services.db_service import DatabaseService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("", response_model=List[Customer])
async def list_customers(db: AsyncSession = Depends(get_db)):
    return await DatabaseService.list_customers(db=db)


@router.get("/{customer_id}", response_model=Customer)
async def get_customer(customer_id: str, db: AsyncSession = Depends(get_db)):
    customer = await DatabaseService.get_customer(customer_id, db=db)
    if not customer:
        raise HTTPException(status_code=404, detail=f"Customer {customer_id} not found")
    return customer


@router.put("/{customer_id}", response_model=Customer)
async def save_customer(customer_id: str, customer: Customer, db: AsyncSession = Depends(get_db)):
    """Create or update a customer; documents keep their own snapshot"""
    if customer.id != customer_id:
        raise HTTPException(status_code=400, detail="Customer id does not match the path")
    return await DatabaseService.save_customer(customer, db=db)


@router.delete("/{customer_id}")
async def delete_customer(customer_id: str, db: AsyncSession = Depends(get_db)):
    if not await DatabaseService.delete_customer(customer_id, db=db):
        raise HTTPException(status_code=404, detail=f"Customer {customer_id} not found")
    return {"deleted": customer_id}
