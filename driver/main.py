"""Entry point for the storage driver service."""

import time
import uuid

import uvicorn
from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from driver.config import DRIVER_HOST, DRIVER_PORT, ORPHAN_SWEEP_INTERVAL_SECONDS
from driver.exceptions import (
    OperationCancelledError,
    PathNotFoundError,
    StorageDriverError,
    UnsupportedMethodError,
    WriterMisuseError
)
from driver.factory import get_storage_driver
from driver.reconciler import OrphanSegmentReconciler
from driver.routes import storage_router
from driver.storage_driver import StorageDriver
from objectstore.exceptions import ObjectStoreError

logger = setup_logging('storage-driver')

app = FastAPI(
    title="Registry Storage Driver",
    description="Hierarchical blob storage over a metadata database and an object store",
    version="1.0.0"
)

reconciler = None


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(f"Request started: {request.method} {request.url.path} [request_id={request_id}]")

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Build the driver (applying migrations once) and start the reconciler if enabled.
    """
    global reconciler

    logger.info("Storage driver service starting up...")

    driver = get_storage_driver()
    logger.info(f"Driver {driver.name} ready")

    if ORPHAN_SWEEP_INTERVAL_SECONDS > 0:
        reconciler = OrphanSegmentReconciler(driver, ORPHAN_SWEEP_INTERVAL_SECONDS)
        await reconciler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """
    Cleanup resources on application shutdown.
    """
    logger.info("Storage driver service shutting down...")

    if reconciler:
        await reconciler.stop()
        logger.info("Reconciler stopped")


@app.exception_handler(PathNotFoundError)
async def path_not_found_handler(request: Request, exc: PathNotFoundError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(f"Path not found: {exc.path} [request_id={request_id}]")
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc), "code": "PATH_NOT_FOUND"}
    )


@app.exception_handler(UnsupportedMethodError)
async def unsupported_method_handler(request: Request, exc: UnsupportedMethodError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(f"Unsupported method: {exc} [request_id={request_id}] path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        content={"detail": str(exc), "code": "UNSUPPORTED_METHOD"}
    )


@app.exception_handler(WriterMisuseError)
async def writer_misuse_handler(request: Request, exc: WriterMisuseError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(f"Writer misuse: {exc} [request_id={request_id}] path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc), "code": "WRITER_MISUSE"}
    )


@app.exception_handler(OperationCancelledError)
async def operation_cancelled_handler(request: Request, exc: OperationCancelledError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(f"Operation cancelled: {exc} [request_id={request_id}] path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_504_GATEWAY_TIMEOUT,
        content={"detail": str(exc), "code": "CANCELLED"}
    )


@app.exception_handler(ObjectStoreError)
async def object_store_error_handler(request: Request, exc: ObjectStoreError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(f"Object store failure: {exc} [request_id={request_id}] path={request.url.path}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": str(exc), "code": "OBJECT_STORE_FAILURE"}
    )


@app.exception_handler(StorageDriverError)
async def storage_driver_error_handler(request: Request, exc: StorageDriverError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(f"Storage driver error: {exc} [request_id={request_id}] path={request.url.path}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc), "code": "STORAGE_DRIVER_ERROR"}
    )


app.include_router(storage_router)


@app.get("/")
async def root(driver: StorageDriver = Depends(get_storage_driver)):
    """
    Liveness probe. Stats the root path like the registry health check does.
    """
    record = driver.stat("/")
    return {"status": "running", "driver": driver.name, "root_is_dir": record.is_dir}


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "driver.main:app",
        host=DRIVER_HOST,
        port=DRIVER_PORT,
    )


if __name__ == "__main__":
    main()
