from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from db.session import engine
from db.base import Base
from contextlib import asynccontextmanager

from routers import auth, devices, actions, sensors, logs, maintenance
from core.config import settings
from core.errors import ServiceError
from core.logging import setup_logging
import models.user, models.device, models.action, models.sensor, models.log  # noqa: F401  register tables
import logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    # startup: create tables (alembic owns schema changes in deployed databases)
    Base.metadata.create_all(bind=engine)
    logger.info("%s started", settings.APP_NAME)
    yield
    # shutdown: nothing for now


app = FastAPI(title=f"{settings.APP_NAME} API", lifespan=lifespan)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(devices.router, prefix="/devices", tags=["devices"])
app.include_router(actions.router, prefix="/actions", tags=["actions"])
app.include_router(sensors.router, prefix="/sensors", tags=["sensors"])
app.include_router(logs.router, prefix="/logs", tags=["logs"])
app.include_router(maintenance.router, prefix="/maintenance", tags=["maintenance"])


@app.get("/")
def root():
    return {"message": f"{settings.APP_NAME} API"}
