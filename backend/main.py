import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.config import CORS_ORIGINS, LOG_LEVEL, SCHEDULER_ENABLED
from backend.routes import auth, dashboard, imports, interactions, leads, notifications
from backend.services.scheduler import LeadImportScheduler


logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------- LIFECYCLE ----------------

@asynccontextmanager
async def lifespan(app: FastAPI):

    scheduler = LeadImportScheduler()
    app.state.scheduler = scheduler

    if SCHEDULER_ENABLED:
        scheduler.start()
    else:
        logger.info("Import scheduler disabled")

    yield

    scheduler.stop()


# ---------------- APP ----------------

app = FastAPI(title="Real Estate Lead CRM", lifespan=lifespan)

# Manual triggers work even when the app is mounted without running lifespan
app.state.scheduler = LeadImportScheduler()

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(leads.router)
app.include_router(interactions.router)
app.include_router(notifications.router)
app.include_router(dashboard.router)
app.include_router(imports.router)


@app.get("/")
def root():
    return {"message": "Real Estate Lead CRM API"}


@app.get("/health")
def health():
    return {"status": "ok"}
