"""
Farm manager data-entry forms: sales, expenses, stock moves.
Each form is validated locally, then handed to the submit-or-queue gateway.
"""
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..services.offline_sync import OfflineSyncService
from .offline import get_offline_sync_service

router = APIRouter(prefix="/manager", tags=["manager"])

FARM_SALES_ENDPOINT = "/api/farm/sales"
FARM_EXPENSES_ENDPOINT = "/api/farm/expenses"
FARM_INVENTORY_TRANSACTION_ENDPOINT = "/api/farm/inventory/transaction"

OFFLINE_CONFIRMATION = "Saved offline"


class FarmSaleForm(BaseModel):
    date: str
    customer_name: str = Field(..., min_length=1)
    product: Literal["catfish", "goat", "chicken", "other"] = "catfish"
    quantity: float = Field(..., gt=0, allow_inf_nan=False)
    unit_price: float = Field(..., gt=0, allow_inf_nan=False)
    payment_method: str = "cash"
    notes: Optional[str] = None


class FarmExpenseForm(BaseModel):
    date: str
    category: Literal["feed", "labor", "utilities", "veterinary", "transport", "equipment"]
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    paid_to: Optional[str] = None
    payment_method: str = "cash"
    notes: Optional[str] = None


class InventoryTransactionForm(BaseModel):
    product: str = Field(..., min_length=1)
    action: Literal["add", "remove", "sale", "mortality"]
    quantity: float = Field(..., gt=0, allow_inf_nan=False)
    reason: Optional[str] = None
    notes: Optional[str] = None


class FormSubmitResponse(BaseModel):
    success: bool
    offline: bool
    message: str


async def _submit(
    service: OfflineSyncService,
    endpoint: str,
    form: BaseModel,
    online_confirmation: str,
) -> FormSubmitResponse:
    result = await service.submit_or_queue(endpoint, form.model_dump(exclude_none=True))
    return FormSubmitResponse(
        success=result.success,
        offline=result.offline,
        message=OFFLINE_CONFIRMATION if result.offline else online_confirmation,
    )


@router.post("/sales", response_model=FormSubmitResponse)
async def record_sale(form: FarmSaleForm, service: OfflineSyncService = Depends(get_offline_sync_service)):
    return await _submit(service, FARM_SALES_ENDPOINT, form, "Sale recorded")


@router.post("/expenses", response_model=FormSubmitResponse)
async def record_expense(form: FarmExpenseForm, service: OfflineSyncService = Depends(get_offline_sync_service)):
    return await _submit(service, FARM_EXPENSES_ENDPOINT, form, "Expense recorded")


@router.post("/inventory", response_model=FormSubmitResponse)
async def record_inventory_transaction(
    form: InventoryTransactionForm,
    service: OfflineSyncService = Depends(get_offline_sync_service),
):
    return await _submit(service, FARM_INVENTORY_TRANSACTION_ENDPOINT, form, "Stock updated")
