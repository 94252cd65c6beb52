import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import admin, checkout, cron, webhooks
from app.core.config import settings
from app.core.errors import PaymentError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="MinSponsor Payments API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PaymentError)
async def payment_error_handler(request: Request, exc: PaymentError):
    if exc.status_code >= 500:
        logger.error(f"[API] {request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# Include routers
app.include_router(checkout.router, prefix="/checkout", tags=["checkout"])
app.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
app.include_router(cron.router, prefix="/cron", tags=["cron"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])


@app.get("/")
async def root():
    return {"message": "MinSponsor Payments API", "version": "1.0.0"}


@app.get("/health")
async def health():
    return {"status": "healthy"}
