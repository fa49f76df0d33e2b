"""Ledger balances and billing-period transition router."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.ledger_account import LedgerAccount
from models.ledger_transaction import LedgerTransaction
from models.subscription import Subscription
from routers.auth_scope import AuthContext, ensure_organization_scope, get_auth_context
from routers.rate_limit import rate_limit
from services.billing_period_transition import run_billing_period_transition
from services.billing_queue import enqueue_billing_period_transition_job
from services.ledger_entries import (
    BALANCE_TYPES,
    aggregate_available_balance_for_usage_credit,
    aggregate_balance_for_ledger_account_from_entries,
    select_ledger_accounts,
    select_ledger_entries_for_transaction,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class BillingPeriodTransitionRequest(BaseModel):
    enqueue: bool = False
    billing_run_id: Optional[str] = None


async def _get_scoped_subscription(db: AsyncSession, auth: AuthContext, subscription_id: str) -> Subscription:
    result = await db.execute(select(Subscription).where(Subscription.id == subscription_id))
    subscription = result.scalar_one_or_none()
    if not subscription:
        raise HTTPException(status_code=404, detail="Subscription not found.")
    ensure_organization_scope(auth, subscription.organization_id, subscription.livemode)
    return subscription


@router.get("/accounts/{ledger_account_id}/balance")
async def ledger_account_balance(
    ledger_account_id: str,
    balance_type: str = Query(default="available"),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(LedgerAccount).where(LedgerAccount.id == ledger_account_id))
    account = result.scalar_one_or_none()
    if not account:
        raise HTTPException(status_code=404, detail="Ledger account not found.")
    ensure_organization_scope(auth, account.organization_id, account.livemode)

    if balance_type not in BALANCE_TYPES:
        raise HTTPException(
            status_code=422,
            detail=f"balance_type must be one of: {', '.join(BALANCE_TYPES)}.",
        )

    balance = await aggregate_balance_for_ledger_account_from_entries(db, account.id, balance_type)
    return {
        "ledger_account_id": account.id,
        "subscription_id": account.subscription_id,
        "usage_meter_id": account.usage_meter_id,
        "balance_type": balance_type,
        "balance": balance,
    }


@router.get("/subscriptions/{subscription_id}/usage-credit-balances")
async def usage_credit_balances(
    subscription_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    subscription = await _get_scoped_subscription(db, auth, subscription_id)
    accounts = await select_ledger_accounts(
        db,
        organization_id=subscription.organization_id,
        livemode=subscription.livemode,
        subscription_id=subscription.id,
    )

    balances = []
    for account in accounts:
        for balance in await aggregate_available_balance_for_usage_credit(db, account):
            balances.append(balance.model_dump(mode="json"))

    return {
        "subscription_id": subscription.id,
        "balances": balances,
        "total_available": sum(item["balance"] for item in balances),
    }


@router.post("/subscriptions/{subscription_id}/billing-period-transitions")
async def create_billing_period_transition(
    subscription_id: str,
    request: Optional[BillingPeriodTransitionRequest] = None,
    _rate_limit: None = Depends(rate_limit("ledger_billing_transition", limit=30, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    subscription = await _get_scoped_subscription(db, auth, subscription_id)
    request = request or BillingPeriodTransitionRequest()

    if request.enqueue:
        period_end = subscription.current_billing_period_end
        try:
            job = enqueue_billing_period_transition_job(
                subscription.id,
                period_end.strftime("%Y%m%dT%H%M%S") if period_end is not None else None,
            )
        except Exception as exc:
            logger.warning("Failed to enqueue billing transition for %s: %s", subscription.id, exc)
            raise HTTPException(status_code=503, detail="Billing queue is unavailable.") from exc
        return {"subscription_id": subscription.id, "status": "queued", "job_id": job.id}

    summary = await run_billing_period_transition(db, subscription.id, billing_run_id=request.billing_run_id)
    return {"status": "completed", **summary}


@router.get("/transactions/{ledger_transaction_id}/entries")
async def ledger_transaction_entries(
    ledger_transaction_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(LedgerTransaction).where(LedgerTransaction.id == ledger_transaction_id))
    ledger_transaction = result.scalar_one_or_none()
    if not ledger_transaction:
        raise HTTPException(status_code=404, detail="Ledger transaction not found.")
    ensure_organization_scope(auth, ledger_transaction.organization_id, ledger_transaction.livemode)

    entries = await select_ledger_entries_for_transaction(db, ledger_transaction.id)
    return {
        "ledger_transaction_id": ledger_transaction.id,
        "type": ledger_transaction.type,
        "description": ledger_transaction.description,
        "entries": [
            {
                "id": entry.id,
                "ledger_account_id": entry.ledger_account_id,
                "entry_type": entry.entry_type,
                "direction": entry.direction,
                "status": entry.status,
                "amount": entry.amount,
                "description": entry.description,
                "source_usage_credit_id": entry.source_usage_credit_id,
                "entry_timestamp": entry.entry_timestamp.isoformat() if entry.entry_timestamp else None,
            }
            for entry in entries
        ],
    }
