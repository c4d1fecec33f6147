import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware

from api.content_lock_routes import router as content_lock_router, conflict_detail, get_config
from content_lock import Base
from content_lock.exceptions import WriteConflictError
from content_lock.maintenance_job import ContentLockMaintenanceJob
from utils.logging_util import logger, set_context, clear_context


class LoggingContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        set_context(
            user_id=request.headers.get('X-User-Id', 'unknown'),
            request_path=request.url.path,
            request_method=request.method,
            start_time=start_time
        )

        try:
            response = await call_next(request)
            request_time = time.time() - start_time
            set_context(request_time_ms=int(request_time * 1000))
            logger.info(f"Request completed in {request_time:.2f}s")
            return response
        finally:
            clear_context()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application"""
    maintenance_job = None
    try:
        logger.info("Initializing application...")
        config = get_config()
        config.get_db_manager().create_tables(Base.metadata)

        maintenance_job = ContentLockMaintenanceJob(config=config)
        scheduled = maintenance_job.initialize()
        logger.info(f"Scheduled content lock clean is {'running' if scheduled else 'off'}")

        logger.info("Application startup completed")
        yield

    except Exception as e:
        logger.error(f"Startup error: {str(e)}")
        raise
    finally:
        if maintenance_job:
            maintenance_job.shutdown()
        logger.info("Shutting down application...")


app = FastAPI(lifespan=lifespan)
app.add_middleware(LoggingContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["X-User-Id"],
)


@app.exception_handler(WriteConflictError)
async def write_conflict_handler(request: Request, exc: WriteConflictError):
    return JSONResponse(status_code=409, content={"detail": conflict_detail(exc)})


@app.get("/healthz")
def healthz():
    return {"status": "ok"}


app.include_router(content_lock_router, prefix="/content-lock")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8001)
