"""
Ledgerline - FastAPI Backend
Subscription usage-credit ledger: balances and billing-period transitions.
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import health, ledger
from services.billing_queue import enqueue_due_billing_period_transitions


async def _periodic_billing_transition_sweep() -> None:
    interval_minutes = max(int(settings.BILLING_TRANSITION_SWEEP_INTERVAL_MINUTES), 0)
    if interval_minutes <= 0:
        return
    while True:
        await asyncio.sleep(interval_minutes * 60)
        try:
            queued = await enqueue_due_billing_period_transitions()
            if queued:
                print(f"🧾 Billing transition sweep: queued={len(queued)}")
        except Exception as exc:
            print(f"⚠️ Billing transition sweep tick failed: {exc}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting Ledgerline API...")
    validate_security_settings()
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            print("🗄️ Database schema verified.")
        except Exception as e:
            print(f"⚠️ Database bootstrap skipped: {e}")
    sweep_task = None
    if int(settings.BILLING_TRANSITION_SWEEP_INTERVAL_MINUTES) > 0:
        sweep_task = asyncio.create_task(_periodic_billing_transition_sweep())
        print(
            "📅 Billing transition sweep enabled "
            f"(every {int(settings.BILLING_TRANSITION_SWEEP_INTERVAL_MINUTES)} min)."
        )
    yield
    # Shutdown
    if sweep_task is not None:
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass
    print("👋 Shutting down API...")


app = FastAPI(
    title="Ledgerline API",
    description="Usage-credit ledger for subscription billing periods",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(ledger.router, prefix="/ledger", tags=["Ledger"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Ledgerline API",
        "version": "0.1.0",
        "status": "running"
    }
