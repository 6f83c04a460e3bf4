import logging
import os

from fastapi import FastAPI
from sqlmodel import SQLModel
from fastapi.middleware.cors import CORSMiddleware

from blindquote.api import catalog, quotation, quotes, validate
from blindquote.db.session import get_engine
from blindquote.services.sessions import channel

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("blindquote")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:80").split(",") if o.strip()]

app = FastAPI(title="Blinds Quote")

# CORS for frontend dev
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(catalog.router, prefix="/catalog", tags=["catalog"])
app.include_router(validate.router, prefix="/validate", tags=["validate"])
app.include_router(quotes.router, prefix="/quotes", tags=["quotes"])
app.include_router(quotation.router, prefix="/quotes", tags=["quotation"])


def _log_changes(quote_number, changes):
    logger.debug("quote=%s changed fields=%s", quote_number, sorted(changes))


channel.subscribe(_log_changes)


@app.on_event("startup")
def on_startup():
    engine = get_engine()
    SQLModel.metadata.create_all(engine)


@app.get("/")
async def root():
    return {"status": "ok", "service": "blinds-quote"}
