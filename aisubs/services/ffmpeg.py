import asyncio
import json
import logging
import shutil
import threading
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel

from aisubs import config
from aisubs.services.errors import ExternalToolError, SourceNotFoundError


logger = logging.getLogger(__name__)

SUPPORTED_OUTPUT_FORMATS = ("srt", "ass")


class SubtitleTrack(BaseModel):
    index: int
    language: str = ""
    format: str = ""
    title: str = ""


def _resolve_binary(name: str) -> str:
    resolved = shutil.which(name)
    if resolved is None:
        raise ExternalToolError(f"{name} not found in PATH")
    return resolved


class FFmpeg:
    """Thin asyncio wrapper around the ffprobe and ffmpeg executables."""

    def __init__(
        self,
        ffmpeg_binary: str = config.FFMPEG_BINARY,
        ffprobe_binary: str = config.FFPROBE_BINARY,
        timeout: float = config.FFMPEG_TIMEOUT,
    ) -> None:
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary
        self.timeout = timeout

    async def run_command(self, binary: str, *args: str) -> Tuple[str, str]:
        executable = _resolve_binary(binary)
        logger.debug("Executing %s %s", executable, " ".join(args))
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ExternalToolError(f"failed to start {binary}: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise ExternalToolError(f"{binary} timed out after {self.timeout:.0f}s") from exc

        stdout_text = stdout.decode("utf-8", errors="replace")
        stderr_text = stderr.decode("utf-8", errors="replace")
        if process.returncode != 0:
            raise ExternalToolError(
                f"{binary} exited with status {process.returncode}: {_summarize_stderr(stderr_text)}",
                stderr=stderr_text,
            )
        return stdout_text, stderr_text

    async def list_subtitle_tracks(self, media_path: str) -> List[SubtitleTrack]:
        if not Path(media_path).exists():
            raise SourceNotFoundError(f"media file does not exist: {media_path}")

        stdout, _ = await self.run_command(
            self.ffprobe_binary,
            "-v",
            "error",
            "-select_streams",
            "s",
            "-show_entries",
            "stream=index,codec_name:stream_tags=language,title",
            "-of",
            "json",
            media_path,
        )
        tracks = parse_ffprobe_streams(stdout)
        for track in tracks:
            logger.info(
                "Parsed track: index=%d language=%s format=%s title=%s",
                track.index,
                track.language,
                track.format,
                track.title,
            )
        return tracks

    async def extract_subtitle_track(
        self,
        media_path: str,
        track_index: int,
        output_format: str,
        lang_code: str,
    ) -> str:
        if track_index < 0:
            raise ValueError(f"invalid track index: {track_index}, must be >= 0")
        if output_format not in SUPPORTED_OUTPUT_FORMATS:
            raise ValueError(f"invalid output format: {output_format}, must be 'srt' or 'ass'")

        source = Path(media_path)
        if not source.exists():
            raise SourceNotFoundError(f"media file does not exist: {media_path}")

        output_path = source.with_name(f"{source.stem}.{lang_code}.{output_format}")
        try:
            await self.run_command(
                self.ffmpeg_binary,
                "-y",
                "-i",
                media_path,
                "-map",
                f"0:s:{track_index}",
                "-c:s",
                output_format,
                str(output_path),
            )
        except ExternalToolError as exc:
            if exc.stderr and "Invalid stream specifier" in exc.stderr:
                raise ExternalToolError(f"invalid subtitle track index {track_index}", stderr=exc.stderr) from exc
            raise

        if not output_path.exists():
            raise ExternalToolError(f"ffmpeg ran successfully but output file was not created: {output_path}")
        return str(output_path)


def parse_ffprobe_streams(payload: str) -> List[SubtitleTrack]:
    """Turn ffprobe's JSON stream listing into tracks numbered by subtitle position."""
    try:
        data = json.loads(payload or "{}")
    except json.JSONDecodeError as exc:
        raise ExternalToolError(f"could not parse ffprobe output: {exc}") from exc

    tracks: List[SubtitleTrack] = []
    for position, stream in enumerate(data.get("streams") or []):
        tags = stream.get("tags") or {}
        tracks.append(
            SubtitleTrack(
                index=position,
                language=str(tags.get("language") or ""),
                format=str(stream.get("codec_name") or ""),
                title=str(tags.get("title") or ""),
            )
        )
    return tracks


def output_format_for(track: SubtitleTrack) -> str:
    if track.format.lower() in ("ass", "ssa"):
        return "ass"
    return "srt"


def _summarize_stderr(stderr: str, limit: int = 400) -> str:
    text = stderr.strip()
    if len(text) <= limit:
        return text
    return "..." + text[-limit:]


_default_ffmpeg: Optional[FFmpeg] = None
_ffmpeg_lock = threading.Lock()


def get_ffmpeg() -> FFmpeg:
    global _default_ffmpeg
    if _default_ffmpeg is None:
        with _ffmpeg_lock:
            if _default_ffmpeg is None:
                _default_ffmpeg = FFmpeg()
    return _default_ffmpeg
