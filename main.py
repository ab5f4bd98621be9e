import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import config
from config import Base, engine
import tables.users, tables.user_sessions, tables.barbers, tables.services
import tables.queue_entries, tables.appointments, tables.services_completed
from routes import users, queue, appointments, barbers, services
from utils.errors import QueueError
from utils.scheduler import start_background_jobs, stop_background_jobs

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    Base.metadata.create_all(bind=engine)

    tasks = start_background_jobs() if config.SCHEDULER_ENABLED else []
    yield

    logger.info("Application shutting down...")
    await stop_background_jobs(tasks)


app = FastAPI(title="Dash-Q API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(QueueError)
async def queue_error_handler(request: Request, exc: QueueError):
    content = {"error": exc.message}
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(users.router)
app.include_router(services.router)
app.include_router(queue.router)
app.include_router(appointments.router)
app.include_router(barbers.router)
