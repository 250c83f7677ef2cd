# portal/api/v1/payment.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.api_security import api_security
from portal.core.auth import get_current_user
from portal.core.bank_feed import BankFeed, get_bank_feed
from portal.db.db import get_db
from portal.schemas.payment import PaymentCreateIn, PaymentVerifyIn
from portal.services import account_service, payment_service

router = APIRouter(
    prefix="/payment", tags=["payment"], dependencies=[Depends(api_security)]
)


@router.post("/create")
async def create_payment(
    payload: PaymentCreateIn,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    account = await account_service.get_account(db, user["sub"])
    session = await payment_service.create_session(
        db, account, payload.package_id, payload.amount, payload.transaction_code
    )
    return {"success": True, "data": session}


@router.get("/session")
async def payment_session(
    db: AsyncSession = Depends(get_db), user=Depends(get_current_user)
):
    session, expired = await payment_service.get_active_session(db, user["sub"])
    if session is None:
        return {
            "success": True,
            "data": None,
            "message": (
                "Payment session expired" if expired else "No active payment session found"
            ),
        }
    return {"success": True, "data": session}


@router.post("/verify")
async def verify_payment(
    payload: PaymentVerifyIn,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
    feed: BankFeed = Depends(get_bank_feed),
):
    result = await payment_service.reconcile(
        db, feed, user["sub"], payload.transaction_code
    )
    if not result["matched"]:
        return {
            "success": False,
            "error": "Payment not found in bank records",
            "debug": result["debug"],
        }
    return {
        "success": True,
        "message": "Payment verified successfully",
        "data": result["data"],
    }


@router.delete("/delete/{transaction_code}")
async def delete_payment(
    transaction_code: str,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    deleted = await payment_service.delete_session(db, user["sub"], transaction_code)
    message = (
        "Transaction deleted successfully"
        if deleted
        else "Transaction already deleted or not found"
    )
    return {"success": True, "message": message}
