import asyncio
from pathlib import Path

import pysubs2
import pytest

from conftest import MKV_HEADER, FakeFFmpeg, FakeProvider, make_srt, make_translator
from aisubs.services.ffmpeg import SubtitleTrack
from aisubs.services.jobs import JobService, get_job_service
from aisubs.services.models import JobStatus
from aisubs.services.store import JobStore


def make_service(store, provider=None, ffmpeg=None, **translator_options) -> JobService:
    return JobService(
        store=store,
        ffmpeg=ffmpeg or FakeFFmpeg(),
        translator=make_translator(provider or FakeProvider(), **translator_options),
    )


def make_video(tmp_path: Path, name: str = "movie.mkv") -> Path:
    path = tmp_path / name
    path.write_bytes(MKV_HEADER)
    return path


@pytest.mark.asyncio
async def test_subtitle_job_completes_without_extracting(tmp_path, store):
    source = make_srt(tmp_path / "movie.eng.srt", 3)
    service = make_service(store)

    job = await service.translate_file(str(source))

    assert job.status == JobStatus.COMPLETED
    assert job.progress == 100.0
    assert job.result.output_path == str(tmp_path / "movie.pl.srt")
    assert job.result.error_message is None
    assert JobStatus.EXTRACTING not in store.statuses
    assert store.statuses == [JobStatus.PROCESSING, JobStatus.TRANSLATING]
    translated = pysubs2.load(job.result.output_path)
    assert [event.text for event in translated.events] == [f"[polish] Hello {n}" for n in (1, 2, 3)]


@pytest.mark.asyncio
async def test_video_job_extracts_before_translating(tmp_path, store):
    video = make_video(tmp_path)
    ffmpeg = FakeFFmpeg(
        tracks=[
            SubtitleTrack(index=0, language="ger", format="subrip"),
            SubtitleTrack(index=1, language="", format="subrip"),
        ]
    )
    service = make_service(store, ffmpeg=ffmpeg)

    job = await service.translate_file(str(video), track_index=1)

    assert job.status == JobStatus.COMPLETED
    assert store.statuses == [JobStatus.PROCESSING, JobStatus.EXTRACTING, JobStatus.TRANSLATING]
    assert ffmpeg.extracted == [(str(video), 1, "srt", "en")]
    assert job.result.output_path == str(tmp_path / "movie.pl.srt")
    assert Path(job.result.output_path).exists()


@pytest.mark.asyncio
async def test_ass_tracks_are_extracted_as_ass(tmp_path, store):
    video = make_video(tmp_path)
    ffmpeg = FakeFFmpeg(tracks=[SubtitleTrack(index=0, language="eng", format="ass")])

    await make_service(store, ffmpeg=ffmpeg).translate_file(str(video))

    assert ffmpeg.extracted[0][2:] == ("ass", "eng")


@pytest.mark.asyncio
@pytest.mark.parametrize("track_index", [1, 5])
async def test_out_of_range_track_fails(tmp_path, store, track_index):
    video = make_video(tmp_path)

    job = await make_service(store).translate_file(str(video), track_index=track_index)

    assert job.status == JobStatus.FAILED
    assert f"invalid track index {track_index} (file has 1 tracks)" in job.result.error_message
    assert "extracting subtitle track" in job.result.error_message
    assert job.result.output_path is None


@pytest.mark.asyncio
async def test_video_without_tracks_fails(tmp_path, store):
    video = make_video(tmp_path)

    job = await make_service(store, ffmpeg=FakeFFmpeg(tracks=[])).translate_file(str(video))

    assert job.status == JobStatus.FAILED
    assert "file has 0 tracks" in job.result.error_message


@pytest.mark.asyncio
async def test_missing_source_fails(tmp_path, store):
    job = await make_service(store).translate_file(str(tmp_path / "gone.srt"))

    assert job.status == JobStatus.FAILED
    assert "does not exist" in job.result.error_message
    assert "detecting file type" in job.result.error_message


@pytest.mark.asyncio
async def test_unsupported_source_fails(tmp_path, store):
    source = tmp_path / "notes.bin"
    source.write_bytes(b"\x00\x01\x02 random bytes")

    job = await make_service(store).translate_file(str(source))

    assert job.status == JobStatus.FAILED
    assert "unsupported file type: Unknown" in job.result.error_message


@pytest.mark.asyncio
async def test_write_failure_mentions_extracted_file(tmp_path, store, monkeypatch):
    video = make_video(tmp_path)

    def broken_write(document, path, format_=None):
        raise PermissionError("read-only file system")

    monkeypatch.setattr("aisubs.services.jobs.write_subtitles", broken_write)
    job = await make_service(store).translate_file(str(video))

    assert job.status == JobStatus.FAILED
    assert "writing translated subtitles" in job.result.error_message
    assert str(tmp_path / "movie.eng.srt") in job.result.error_message
    # the extracted file is left in place
    assert (tmp_path / "movie.eng.srt").exists()


@pytest.mark.asyncio
async def test_partial_batch_failure_still_completes(tmp_path, store):
    source = make_srt(tmp_path / "show_en.srt", 62)
    service = make_service(store, provider=FakeProvider(fail_on={31}), batch_size=30)

    job = await service.translate_file(str(source))

    assert job.status == JobStatus.COMPLETED
    assert job.result.output_path == str(tmp_path / "show_pl.srt")
    texts = [event.text for event in pysubs2.load(job.result.output_path).events]
    assert len(texts) == 62
    assert texts[:30] == [f"[polish] Hello {n}" for n in range(1, 31)]
    assert texts[30:60] == [f"Hello {n}" for n in range(31, 61)]
    assert texts[60:] == ["[polish] Hello 61", "[polish] Hello 62"]


@pytest.mark.asyncio
async def test_partial_batch_failure_fails_job_when_strict(tmp_path, store):
    source = make_srt(tmp_path / "show.srt", 62)
    service = make_service(store, provider=FakeProvider(fail_on={31}), fail_on_partial=True)

    job = await service.translate_file(str(source))

    assert job.status == JobStatus.FAILED
    assert "1 of 3 translation batches failed" in job.result.error_message
    assert not (tmp_path / "show.pl.srt").exists()


@pytest.mark.asyncio
async def test_progress_is_rescaled_and_monotonic(tmp_path, store):
    source = make_srt(tmp_path / "movie.srt", 50)
    service = make_service(store, batch_size=5, concurrency_limit=3)

    job = await service.translate_file(str(source))

    values = store.progress_values
    assert values == sorted(values)
    assert values[0] == 1.0
    assert values[1] == 20.0
    assert values[-2] == pytest.approx(95.0)
    assert values[-1] == 99.0
    assert all(value < 100.0 for value in values)
    assert pytest.approx(values[2:-1]) == [20.0 + 7.5 * n for n in range(1, 11)]
    assert job.progress == 100.0


@pytest.mark.asyncio
async def test_create_job_returns_immediately(tmp_path, store):
    source = make_srt(tmp_path / "movie.srt", 4)
    release = asyncio.Event()

    class GatedProvider(FakeProvider):
        async def translate_batch(self, subtitles, target_language, model):
            await release.wait()
            return await super().translate_batch(subtitles, target_language, model)

    service = make_service(store, provider=GatedProvider())

    job = await service.create_job(str(source), 0)
    assert job.status == JobStatus.PENDING

    for _ in range(50):
        if store.get(job.id).status == JobStatus.TRANSLATING:
            break
        await asyncio.sleep(0.01)
    running = await service.get_job(job.id)
    assert running.status == JobStatus.TRANSLATING
    assert running.result is None

    release.set()
    await service.wait_for_jobs()

    finished = await service.get_job(job.id)
    assert finished.status == JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_jobs_run_independently(tmp_path, store):
    good = make_srt(tmp_path / "good.srt", 3)
    service = make_service(store)

    first = await service.create_job(str(good), 0)
    second = await service.create_job(str(tmp_path / "missing.srt"), 0)
    await service.wait_for_jobs()

    assert (await service.get_job(first.id)).status == JobStatus.COMPLETED
    assert (await service.get_job(second.id)).status == JobStatus.FAILED


@pytest.mark.asyncio
async def test_run_job_for_unknown_id_is_ignored(store):
    await make_service(store).run_job("does-not-exist")
    assert len(store) == 0


@pytest.mark.asyncio
async def test_get_unknown_job_raises_key_error(store):
    with pytest.raises(KeyError):
        await make_service(store).get_job("nope")


def test_get_job_service_is_a_singleton():
    assert get_job_service() is get_job_service()


def test_injected_collaborators_are_kept(provider):
    job_store = JobStore()
    ffmpeg = FakeFFmpeg()
    translator = make_translator(provider)

    service = JobService(store=job_store, ffmpeg=ffmpeg, translator=translator)

    assert service.store is job_store
    assert service.ffmpeg is ffmpeg
    assert service.translator is translator


@pytest.mark.asyncio
async def test_subtitle_source_without_extension(tmp_path, store):
    source = make_srt(tmp_path / "subtitle.srt", 3).rename(tmp_path / "subtitle")

    job = await make_service(store).translate_file(str(source))

    assert job.status == JobStatus.COMPLETED, job.result
    assert job.result.output_path == str(tmp_path / "subtitle.pl")
    translated = pysubs2.load(job.result.output_path, format_="srt")
    assert [event.text for event in translated.events] == [f"[polish] Hello {n}" for n in (1, 2, 3)]


@pytest.mark.asyncio
async def test_english_target_does_not_overwrite_source(tmp_path, store):
    source = make_srt(tmp_path / "movie.en.srt", 2)

    job = await make_service(store, target_language="english").translate_file(str(source))

    assert job.status == JobStatus.COMPLETED
    assert job.result.output_path == str(tmp_path / "movie.en.en.srt")
    assert [event.text for event in pysubs2.load(str(source)).events] == ["Hello 1", "Hello 2"]
    translated = pysubs2.load(job.result.output_path)
    assert [event.text for event in translated.events] == ["[english] Hello 1", "[english] Hello 2"]
