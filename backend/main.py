# backend/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

from config import settings
from database import init_db
from services.errors import LedgerError

load_dotenv()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger(__name__)

# Router imports
from routes.products import router as products_router
from routes.stock import router as stock_router
from routes.sales import router as sales_router
from routes.returns import router as returns_router
from routes.reports import router as reports_router
from routes.logs import router as logs_router

# Initialisation
init_db()

app = FastAPI(title=f"{settings.SHOP_NAME} Ledger API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Ledger errors become structured JSON with the status code of their class
@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(level, "%s %s -> %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Router registration
app.include_router(products_router)
app.include_router(stock_router, prefix="/stock")
app.include_router(sales_router)
app.include_router(returns_router)
app.include_router(reports_router)
app.include_router(logs_router)

@app.get("/")
def read_root():
    return {"message": f"{settings.SHOP_NAME} ledger API is running"}
