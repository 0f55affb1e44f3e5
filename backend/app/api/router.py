from fastapi import APIRouter

from app.api.expenses import expenses_router
from app.api.tax import revision_router, tax_router

api_router = APIRouter()
# /expenses/tax/* must be matched before /expenses/{expense_id}.
api_router.include_router(tax_router)
api_router.include_router(expenses_router)
api_router.include_router(revision_router)
