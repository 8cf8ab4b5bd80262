"""
Transaction Router

Creation, payment settlement, void and store history.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from pos.auth import Identity, get_identity, require_store_access
from pos.transactions import TransactionManager
from pos.transactions.constants import DEFAULT_HISTORY_LIMIT

from .deps import get_transaction_manager_dep
from .models import CreateTransactionRequest, ProcessPaymentRequest, VoidTransactionRequest
from .responses import success

router = APIRouter(tags=["transactions"])


@router.post("/transactions", status_code=201)
async def create_transaction(
    request: CreateTransactionRequest,
    identity: Identity = Depends(get_identity),
    transactions: TransactionManager = Depends(get_transaction_manager_dep),
):
    require_store_access(identity, request.store_id)
    transaction = await transactions.create_transaction(
        store_id=request.store_id,
        cashier_id=request.cashier_id or identity.user_id,
        type=request.type,
        payment_method=request.payment_method,
        customer_id=request.customer_id,
        cart_id=request.cart_id,
        payment_reference=request.payment_reference,
        notes=request.notes,
        metadata=request.metadata,
    )
    return success(transaction.to_dict(), "Transaction created successfully")


@router.get("/transactions/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    identity: Identity = Depends(get_identity),
    transactions: TransactionManager = Depends(get_transaction_manager_dep),
):
    transaction = await transactions.get_transaction(transaction_id)
    return success(transaction.to_dict())


@router.post("/transactions/{transaction_id}/payment")
async def process_payment(
    transaction_id: str,
    request: ProcessPaymentRequest,
    identity: Identity = Depends(get_identity),
    transactions: TransactionManager = Depends(get_transaction_manager_dep),
):
    transaction = await transactions.process_payment(
        transaction_id,
        payment_method=request.payment_method,
        amount=request.amount,
        payment_reference=request.payment_reference,
        metadata=request.metadata,
    )
    return success(transaction.to_dict(), "Payment processed successfully")


@router.post("/transactions/{transaction_id}/void")
async def void_transaction(
    transaction_id: str,
    request: VoidTransactionRequest,
    identity: Identity = Depends(get_identity),
    transactions: TransactionManager = Depends(get_transaction_manager_dep),
):
    transaction = await transactions.void_transaction(transaction_id, request.reason)
    return success(transaction.to_dict(), "Transaction voided successfully")


@router.get("/stores/{store_id}/transactions")
async def get_store_transactions(
    store_id: str,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    cashier_id: Optional[str] = Query(None, alias="cashierId"),
    customer_id: Optional[str] = Query(None, alias="customerId"),
    type: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = DEFAULT_HISTORY_LIMIT,
    offset: int = 0,
    identity: Identity = Depends(get_identity),
    transactions: TransactionManager = Depends(get_transaction_manager_dep),
):
    require_store_access(identity, store_id)
    page = await transactions.get_transaction_history(
        store_id,
        start_date=start_date,
        end_date=end_date,
        cashier_id=cashier_id,
        customer_id=customer_id,
        type=type,
        status=status,
        limit=limit,
        offset=offset,
    )
    return success(page.to_dict())
