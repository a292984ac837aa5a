import logging

from fastapi import FastAPI

from app.core.config import LOG_LEVEL
from app.api.endpoints import auth as auth_api
from app.api.endpoints import users as users_api
from app.api.endpoints import agents as agents_api
from app.api.endpoints import transactions as transactions_api
from app.api.endpoints import revenue_shares as revenue_shares_api
from app.api.endpoints import reports as reports_api

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Brokerage Back Office API", version="0.1.0")

# Include API routers
app.include_router(auth_api.router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(users_api.router, prefix="/api/v1/users", tags=["Users"])
app.include_router(agents_api.router, prefix="/api/v1/agents", tags=["Agents"])
app.include_router(transactions_api.router, prefix="/api/v1/transactions", tags=["Transactions"])
app.include_router(revenue_shares_api.router, prefix="/api/v1/revenue-shares", tags=["Revenue Share"])
app.include_router(reports_api.router, prefix="/api/v1/reports", tags=["Reports"])

@app.get("/ping", tags=["Health Check"])
async def ping():
    return {"message": "pong"}
