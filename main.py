import logging
from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from config import LOG_LEVEL, REPORTS_DIR
from database import Base, engine
from errors import NagarSevaError
from routers import accounts, admin, citizen, reference, reports, state_admin
from routers.reports import limiter

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


# ── Batch jobs ────────────────────────────────────────────────────────────────
def job_weekly_escalations():
    from batch_report import write_weekly_digest
    write_weekly_digest(Path(REPORTS_DIR))

scheduler = AsyncIOScheduler(timezone="Asia/Kolkata")
scheduler.add_job(job_weekly_escalations, CronTrigger(day_of_week="mon", hour=6, minute=0), id="weekly_escalations")

# ── Startup / shutdown ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(engine)
    scheduler.start()
    logger.info("Scheduler started")
    yield
    scheduler.shutdown()

app = FastAPI(title="NagarSeva API", lifespan=lifespan)
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # narrow to the dashboard origins in production
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error mapping ─────────────────────────────────────────────────────────────
@app.exception_handler(NagarSevaError)
async def domain_error_handler(request: Request, exc: NagarSevaError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"detail": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Server error"})


app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(accounts.router)
app.include_router(reports.router)
app.include_router(citizen.router)
app.include_router(admin.router)
app.include_router(state_admin.router)
app.include_router(reference.router)

@app.get("/")
def root():
    return {"status": "ok", "message": "NagarSeva API"}
