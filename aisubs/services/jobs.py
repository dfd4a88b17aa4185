import asyncio
import logging
import threading
from pathlib import Path
from typing import Callable, Optional, Set

from aisubs.services.errors import (
    ExternalToolError,
    InvalidTrackIndexError,
    JobNotFoundError,
    PipelineStepError,
    SourceNotFoundError,
    UnsupportedSourceError,
)
from aisubs.services.ffmpeg import FFmpeg, get_ffmpeg, output_format_for
from aisubs.services.filetypes import FileType, detect_file_type
from aisubs.services.models import JobModel, JobStatus
from aisubs.services.paths import language_tag, translated_output_path
from aisubs.services.progress import ProgressRelay
from aisubs.services.store import JobStore, get_job_store
from aisubs.services.subtitles import open_subtitles, write_subtitles
from aisubs.services.translator import SubtitleTranslator


logger = logging.getLogger(__name__)

EXTRACTED_PROGRESS = 20.0
TRANSLATION_SPAN = 75.0
FINALIZING_PROGRESS = 99.0
DEFAULT_TRACK_LANGUAGE = "en"


class JobService:
    """Runs translation jobs in the background and records their state.

    :meth:`create_job` returns as soon as the job is stored; the pipeline runs
    on its own asyncio task. Each job id must be run at most once.
    """

    def __init__(
        self,
        store: Optional[JobStore] = None,
        ffmpeg: Optional[FFmpeg] = None,
        translator: Optional[SubtitleTranslator] = None,
        detector: Callable[[str], FileType] = detect_file_type,
    ) -> None:
        self.store = store if store is not None else get_job_store()
        self.ffmpeg = ffmpeg if ffmpeg is not None else get_ffmpeg()
        self.translator = translator if translator is not None else SubtitleTranslator()
        self.detector = detector
        self._tasks: Set["asyncio.Task[None]"] = set()

    async def create_job(self, source_path: str, track_index: int = 0) -> JobModel:
        job = self.store.create(source_path, track_index)
        task = asyncio.create_task(self.run_job(job.id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("Created job %s for %s (track %d)", job.id, source_path, track_index)
        return job

    async def get_job(self, job_id: str) -> JobModel:
        return self.store.get(job_id)

    async def translate_file(self, source_path: str, track_index: int = 0) -> JobModel:
        """Create a job and run it in the foreground."""
        job = self.store.create(source_path, track_index)
        await self.run_job(job.id)
        return self.store.get(job.id)

    async def wait_for_jobs(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def run_job(self, job_id: str) -> None:
        try:
            job = self.store.get(job_id)
        except JobNotFoundError:
            logger.error("Error getting job %s", job_id)
            return

        stage = "detecting file type"
        extracted_path: Optional[str] = None
        try:
            self.store.set_status(job_id, JobStatus.PROCESSING)
            self.store.set_progress(job_id, 1.0)

            file_type = self._detect(job.source_path)

            if file_type.is_video:
                stage = "extracting subtitle track"
                self.store.set_status(job_id, JobStatus.EXTRACTING)
                extracted_path = await self._extract(job)
                subtitle_path = extracted_path
            else:
                subtitle_path = job.source_path
                logger.info("Using subtitle file directly for job %s: %s", job_id, subtitle_path)
            self.store.set_progress(job_id, EXTRACTED_PROGRESS)

            stage = "translating subtitles"
            self.store.set_status(job_id, JobStatus.TRANSLATING)
            document = open_subtitles(subtitle_path)
            async with ProgressRelay(lambda value: self.store.set_progress(job_id, value)) as relay:
                report = await self.translator.translate_entries(
                    document.entries,
                    on_progress=relay.stage(EXTRACTED_PROGRESS, TRANSLATION_SPAN),
                )
            if report.untranslated_indices:
                logger.warning(
                    "Job %s: %d entries left in the source language",
                    job_id,
                    len(report.untranslated_indices),
                )

            stage = "writing translated subtitles"
            tag = language_tag(self.translator.config.target_language)
            output_path = translated_output_path(subtitle_path, tag)
            write_subtitles(document, output_path)

            self.store.set_progress(job_id, FINALIZING_PROGRESS)
            self.store.set_result(job_id, output_path)
            logger.info("Job %s completed: %s", job_id, output_path)
        except Exception as exc:  # noqa: BLE001
            context = None
            if extracted_path is not None:
                context = f"subtitles were extracted to '{extracted_path}'"
            error = PipelineStepError(stage, exc, context)
            logger.exception("Job %s failed while %s", job_id, stage)
            self.store.set_error(job_id, error)

    def _detect(self, source_path: str) -> FileType:
        if not Path(source_path).exists():
            raise SourceNotFoundError(f"source file '{source_path}' does not exist")
        file_type = self.detector(source_path)
        if not (file_type.is_video or file_type.is_subtitle):
            raise UnsupportedSourceError(f"unsupported file type: {file_type.value}")
        return file_type

    async def _extract(self, job: JobModel) -> str:
        tracks = await self.ffmpeg.list_subtitle_tracks(job.source_path)
        if not 0 <= job.track_index < len(tracks):
            raise InvalidTrackIndexError(job.track_index, len(tracks))

        track = tracks[job.track_index]
        output_format = output_format_for(track)
        lang_code = track.language or DEFAULT_TRACK_LANGUAGE
        logger.info(
            "Extracting subtitle track %d (%s) from %s as %s",
            job.track_index,
            lang_code,
            job.source_path,
            output_format,
        )
        extracted_path = await self.ffmpeg.extract_subtitle_track(
            job.source_path, job.track_index, output_format, lang_code
        )
        if not Path(extracted_path).exists():
            raise ExternalToolError(f"extracted subtitle file '{extracted_path}' does not exist")
        return extracted_path


_service: Optional[JobService] = None
_service_lock = threading.Lock()


def get_job_service() -> JobService:
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = JobService()
    return _service
