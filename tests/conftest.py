import asyncio
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pysubs2
import pytest

from aisubs.services.errors import ProviderError
from aisubs.services.ffmpeg import SubtitleTrack
from aisubs.services.models import (
    JobStatus,
    SubtitleItem,
    SubtitleLinePayload,
    SubtitlePayload,
    TranslationConfig,
)
from aisubs.services.store import JobStore
from aisubs.services.translator import SubtitleTranslator

MKV_HEADER = b"\x1a\x45\xdf\xa3" + b"\x00" * 60


def make_srt(path: Path, count: int, template: str = "Hello {n}") -> Path:
    subs = pysubs2.SSAFile()
    for n in range(1, count + 1):
        subs.events.append(pysubs2.SSAEvent(start=n * 1000, end=n * 1000 + 900, text=template.format(n=n)))
    subs.save(str(path))
    return path


def translated(subtitle: SubtitlePayload, target_language: str) -> SubtitlePayload:
    return SubtitlePayload(
        index=subtitle.index,
        lines=[
            SubtitleLinePayload(items=[SubtitleItem(text=f"[{target_language}] {item.text}") for item in line.items])
            for line in subtitle.lines
        ],
    )


class FakeProvider:
    """Echoes every run back prefixed with the target language.

    Batches containing any index in ``fail_on`` raise ``ProviderError``;
    ``delays`` maps the first index of a batch to a sleep in seconds.
    """

    def __init__(
        self,
        fail_on: Iterable[int] = (),
        delays: Optional[Dict[int, float]] = None,
        reverse: bool = False,
    ) -> None:
        self.fail_on = set(fail_on)
        self.delays = delays or {}
        self.reverse = reverse
        self.calls: List[List[int]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def translate_batch(self, subtitles, target_language, model):
        indices = [subtitle.index for subtitle in subtitles]
        self.calls.append(indices)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(indices[0], 0.001))
            if self.fail_on.intersection(indices):
                raise ProviderError(f"provider rejected batch starting at {indices[0]}")
            result = [translated(subtitle, target_language) for subtitle in subtitles]
            if self.reverse:
                result.reverse()
            return result
        finally:
            self.in_flight -= 1


class FakeFFmpeg:
    def __init__(self, tracks: Optional[List[SubtitleTrack]] = None, entry_count: int = 3) -> None:
        self.tracks = tracks if tracks is not None else [SubtitleTrack(index=0, language="eng", format="subrip")]
        self.entry_count = entry_count
        self.extracted: List[tuple] = []

    async def list_subtitle_tracks(self, media_path: str) -> List[SubtitleTrack]:
        return list(self.tracks)

    async def extract_subtitle_track(self, media_path, track_index, output_format, lang_code) -> str:
        self.extracted.append((media_path, track_index, output_format, lang_code))
        source = Path(media_path)
        output_path = source.with_name(f"{source.stem}.{lang_code}.{output_format}")
        make_srt(output_path, self.entry_count)
        return str(output_path)


class RecordingStore(JobStore):
    def __init__(self) -> None:
        super().__init__()
        self.statuses: List[JobStatus] = []
        self.progress_values: List[float] = []

    def set_status(self, job_id: str, status: JobStatus) -> None:
        self.statuses.append(status)
        super().set_status(job_id, status)

    def set_progress(self, job_id: str, progress: float) -> None:
        self.progress_values.append(progress)
        super().set_progress(job_id, progress)


def make_translator(provider, batch_size: int = 30, concurrency_limit: int = 5, **kwargs) -> SubtitleTranslator:
    translation_config = TranslationConfig(batch_size=batch_size, concurrency_limit=concurrency_limit, **kwargs)
    return SubtitleTranslator(translation_config=translation_config, provider=provider)


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
