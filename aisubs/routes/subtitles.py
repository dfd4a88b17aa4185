import logging
from pathlib import Path
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from aisubs.services.errors import ExternalToolError
from aisubs.services.ffmpeg import FFmpeg, get_ffmpeg


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/subtitles")
async def list_subtitles(path: str = "", ffmpeg: FFmpeg = Depends(get_ffmpeg)) -> List[dict]:
    if not path:
        raise HTTPException(status_code=400, detail="The 'path' query parameter is required")
    if not Path(path).exists():
        raise HTTPException(status_code=404, detail=f"The file '{path}' does not exist")

    logger.info("Scanning file for subtitles: %s", path)
    try:
        tracks = await ffmpeg.list_subtitle_tracks(path)
    except ExternalToolError as exc:
        logger.error("Failed to list subtitle tracks for %s: %s", path, exc)
        raise HTTPException(status_code=500, detail=f"Error listing subtitle tracks: {exc}") from exc

    if not tracks:
        raise HTTPException(status_code=404, detail=f"No subtitle tracks found in the media file: {path}")
    return [track.model_dump() for track in tracks]
