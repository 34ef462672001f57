import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend import app_context
from backend.app.routes.billing import router as billing_router
from backend.app.routes.organizations import router as organizations_router
from backend.app.services.billing import get_config, get_organization_repository, reset_services
from backend.middleware_edge import install_edge_middleware

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("app")

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

app = FastAPI(title="Tint CRM API")

install_edge_middleware(
    app,
    repository_factory=get_organization_repository,
    cookie_secure=get_config().cookie_secure,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(billing_router)
app.include_router(organizations_router)


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.on_event("startup")
async def startup_database() -> None:
    config = get_config()
    pool = await app_context.create_pool(config)
    app_context.configure(pool=pool)
    reset_services()
    logger.info("Connected to database %s on %s:%s", config.db_name, config.db_host, config.db_port)


@app.on_event("shutdown")
async def shutdown_database() -> None:
    try:
        pool = app_context.get_pool()
    except RuntimeError:
        return
    app_context.configure(pool=None)
    await pool.close()
