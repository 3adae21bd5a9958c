from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from payout_engine.core.config import settings
from payout_engine.routers import ledger, payouts, vendors

OPENAPI_TAGS = [
    {"name": "Payouts", "description": "Run, retry and reconcile weekly vendor payouts."},
    {"name": "Ledger", "description": "Record credits, holds and refunds; read vendor balances."},
    {"name": "Vendors", "description": "Manage vendors, bank details and payout schedules."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Vendor wallet ledger and weekly payout settlement API. "
        "Accrue vendor earnings, disburse them in weekly batches, "
        "and reconcile payouts made outside the batch path."
    ),
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count"],
)

app.include_router(payouts.router, prefix="/v1/payouts", tags=["Payouts"])
app.include_router(ledger.router, prefix="/v1/ledger", tags=["Ledger"])
app.include_router(vendors.router, prefix="/v1/vendors", tags=["Vendors"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "status": "running",
    }
