"""Task export routes (JSON and CSV downloads)."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response

from ..deps import get_task_service, task_auth
from ..models.task import utcnow
from ..schemas import ExportEnvelope
from ..services.task_service import TaskService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["export"], dependencies=[Depends(task_auth)])


@router.get("/tasks/{export_format}")
async def export_tasks(
    export_format: str,
    task_service: TaskService = Depends(get_task_service),
) -> Response:
    """Download every task as ``json`` or ``csv``.

    Raises:
        ValidationError: If the format is not supported
    """
    export = await task_service.export_tasks(export_format)
    filename = f"tasks.{export['format']}"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}

    logger.info(f"Exporting {export['count']} tasks as {export['format']}")

    if export["format"] == "csv":
        return Response(content=export["content"], media_type="text/csv", headers=headers)

    body = ExportEnvelope(
        export_date=utcnow(),
        format=export["format"],
        count=export["count"],
        data=export["content"],
    )
    return JSONResponse(
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers=headers,
    )
