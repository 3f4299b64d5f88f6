import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from carefile.database import close_db, init_db
from carefile.errors import CarefileError
from carefile.routers import admin, ai, cases, events, patients
from carefile.services.analysis_queue import analysis_queue

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Carefile...")
    await init_db()
    logger.info("Database initialized")
    analysis_queue.start()
    yield
    await analysis_queue.stop()
    await close_db()
    logger.info("Carefile shut down")


app = FastAPI(
    title="Carefile",
    description="Patient records and AI medical pre-analysis for medical facilitation",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(patients.router)
app.include_router(cases.router)
app.include_router(ai.router)
app.include_router(admin.router)
app.include_router(events.router)


def _describe(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    return f"{location}: {error.get('msg')}" if location else str(error.get("msg"))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = [_describe(error) for error in exc.errors()]
    return JSONResponse(status_code=400, content={"detail": "; ".join(messages) or "Invalid request"})


@app.exception_handler(CarefileError)
async def carefile_error_handler(request: Request, exc: CarefileError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": f"Internal server error: {exc}"})


@app.get("/health")
async def health():
    return {"status": "ok"}
