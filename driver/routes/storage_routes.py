"""Storage driver API routes."""

from datetime import datetime, timedelta, timezone
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import StreamingResponse
from fastapi.concurrency import run_in_threadpool

from common.constants import STREAM_PIECE_SIZE_BYTES
from common.logging_config import get_logger
from driver.factory import get_storage_driver
from driver.schemas.storage import ErrorResponse, ListResponse, MoveRequest, StatResponse, UploadResponse, URLResponse
from driver.storage_driver import StorageDriver
from driver.writer import WriterState

logger = get_logger(__name__)

router = APIRouter(prefix="/storage", tags=["Storage"])

NOT_FOUND = {404: {"model": ErrorResponse}}


def _logical(path: str) -> str:
    return "/" + path.strip("/")


def _iter_stream(stream) -> Iterator[bytes]:
    try:
        while True:
            piece = stream.read(STREAM_PIECE_SIZE_BYTES)
            if not piece:
                break
            yield piece
    finally:
        stream.close()


@router.get("/content/{path:path}", responses=NOT_FOUND)
def get_content(
    path: str,
    offset: Optional[int] = Query(None, ge=0),
    driver: StorageDriver = Depends(get_storage_driver)
):
    """
    Download file content. With offset, the content is streamed from that byte on.

    Raises:
        - 404: No file at path, or path is a directory
    """
    if offset is None:
        content = driver.get_content(_logical(path))
        return Response(content=content, media_type="application/octet-stream")

    stream = driver.reader(_logical(path), offset)
    return StreamingResponse(_iter_stream(stream), media_type="application/octet-stream")


@router.put("/content/{path:path}", status_code=status.HTTP_201_CREATED)
async def put_content(
    path: str,
    request: Request,
    driver: StorageDriver = Depends(get_storage_driver)
):
    """
    Replace the content at path with the request body.
    """
    body = await request.body()
    await run_in_threadpool(driver.put_content, _logical(path), body)
    return Response(status_code=status.HTTP_201_CREATED)


@router.post("/uploads/{path:path}", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload(
    path: str,
    request: Request,
    append: bool = Query(False),
    driver: StorageDriver = Depends(get_storage_driver)
):
    """
    Stream the request body through a segmented writer and commit it.
    With append=true the body is added to an existing upload.
    """
    writer = await run_in_threadpool(driver.writer, _logical(path), append)
    try:
        async for piece in request.stream():
            if piece:
                await run_in_threadpool(writer.write, piece)
        await run_in_threadpool(writer.commit)
    except Exception:
        logger.warning(f"Upload to {_logical(path)} failed, cancelling writer")
        if writer.state is WriterState.OPEN:
            await run_in_threadpool(writer.cancel)
        raise
    finally:
        if writer.state is not WriterState.CLOSED:
            await run_in_threadpool(writer.close)

    return UploadResponse(path=_logical(path), size=writer.size())


@router.delete("/content/{path:path}", status_code=status.HTTP_204_NO_CONTENT)
def delete_content(path: str, driver: StorageDriver = Depends(get_storage_driver)):
    """
    Delete a file or a directory with everything below it. Missing paths succeed.
    """
    driver.delete(_logical(path))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/stat/{path:path}", response_model=StatResponse, responses=NOT_FOUND)
def stat(path: str, driver: StorageDriver = Depends(get_storage_driver)):
    record = driver.stat(_logical(path))
    return StatResponse(
        path=record.path,
        size=record.size,
        modified_at=record.modified_at,
        is_dir=record.is_dir,
    )


@router.get("/list/{path:path}", response_model=ListResponse)
def list_children(path: str, driver: StorageDriver = Depends(get_storage_driver)):
    return ListResponse(path=_logical(path), children=driver.list(_logical(path)))


@router.post("/move", status_code=status.HTTP_204_NO_CONTENT, responses=NOT_FOUND)
def move(request: MoveRequest, driver: StorageDriver = Depends(get_storage_driver)):
    driver.move(_logical(request.source), _logical(request.destination))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/url/{path:path}", response_model=URLResponse, responses={405: {"model": ErrorResponse}})
def url_for(
    path: str,
    method: str = Query("GET"),
    expires_in: int = Query(1200, gt=0),
    driver: StorageDriver = Depends(get_storage_driver)
):
    """
    Issue a temporary URL for content held in the object store.

    Raises:
        - 405: Content is stored inline, or path does not exist
    """
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
    url = driver.url_for(_logical(path), {"method": method, "expiry": expires_at})
    return URLResponse(path=_logical(path), url=url, method=method.upper(), expires_at=expires_at)
