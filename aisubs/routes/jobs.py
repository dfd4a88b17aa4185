from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from pydantic import BaseModel

from aisubs.services.jobs import JobService, get_job_service
from aisubs.services.models import JobModel, JobStatus


router = APIRouter()


class TranslateRequest(BaseModel):
    path: Optional[str] = None
    track_index: int = 0


def _job_payload(job: JobModel) -> dict:
    return job.model_dump(mode="json")


@router.post("/translate")
async def create_job(
    request: TranslateRequest,
    job_service: JobService = Depends(get_job_service),
) -> dict:
    if not request.path:
        raise HTTPException(status_code=400, detail="The 'path' field is required in the request body")
    if request.track_index < 0:
        raise HTTPException(status_code=400, detail=f"Invalid track index: {request.track_index}")
    if not Path(request.path).exists():
        raise HTTPException(status_code=404, detail=f"File not found: {request.path}")

    job = await job_service.create_job(request.path, request.track_index)
    return {"message": "Translation job created", "job_id": job.id}


@router.get("/jobs/{job_id}")
async def get_job(
    job_id: str,
    job_service: JobService = Depends(get_job_service),
) -> dict:
    try:
        job = await job_service.get_job(job_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Job not found")
    return _job_payload(job)


@router.get("/jobs/{job_id}/download")
async def download_job_result(
    job_id: str,
    job_service: JobService = Depends(get_job_service),
) -> FileResponse:
    try:
        job = await job_service.get_job(job_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Job not found") from exc

    if job.status != JobStatus.COMPLETED or job.result is None or not job.result.output_path:
        raise HTTPException(status_code=404, detail="Translated subtitles not available")

    output_path = Path(job.result.output_path)
    if not output_path.exists():
        raise HTTPException(status_code=404, detail="Translated subtitles not found")

    return FileResponse(
        path=output_path,
        media_type="application/x-subrip" if output_path.suffix == ".srt" else "text/plain",
        filename=output_path.name,
    )
