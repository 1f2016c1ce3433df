import logging
import os

from alembic import command
from alembic.config import Config
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.routes import coins, cron, health, prices
from src.config import configure_logging
from src.price_engine.errors import ConfigError

# Load environment variables
load_dotenv()
configure_logging()

logger = logging.getLogger("cryptodash.api")

origins = [
    origin
    for origin in (
        "http://localhost:3000",
        os.getenv("FRONTEND_BASE_URL"),
    )
    if origin
]

app = FastAPI(title="Cryptocurrency Price Dashboard API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConfigError)
async def config_error_handler(request: Request, exc: ConfigError):
    logger.error("Configuration error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.get("/")
def read_root():
    return {"message": "Cryptocurrency Price Dashboard API"}


app.include_router(prices.router)
app.include_router(cron.router)
app.include_router(coins.router)
app.include_router(health.router)


# DB Start up after deploying
@app.on_event("startup")
async def run_migrations():
    alembic_cfg = Config("alembic.ini")
    command.upgrade(alembic_cfg, "head")
