import asyncio
import logging
import math
from typing import Callable, Dict, List, Optional, Protocol, Sequence

from aisubs import config
from aisubs.services.errors import PartialTranslationError, ProviderError
from aisubs.services.models import (
    SubtitleItem,
    SubtitleLinePayload,
    SubtitlePayload,
    TranslationConfig,
    TranslationReport,
)
from aisubs.services.subtitles import SubtitleEntry
from aisubs.services.translation_llm_client import TranslationClient


logger = logging.getLogger(__name__)


class TranslationProvider(Protocol):
    async def translate_batch(
        self,
        subtitles: List[SubtitlePayload],
        target_language: str,
        model: str,
    ) -> List[SubtitlePayload]:
        ...


def default_translation_config() -> TranslationConfig:
    return TranslationConfig(
        batch_size=config.TRANSLATION_BATCH_SIZE,
        concurrency_limit=config.TRANSLATION_CONCURRENCY_LIMIT,
        target_language=config.TRANSLATION_TARGET_LANGUAGE,
        model=config.TRANSLATION_LLM_MODEL_NAME,
        fail_on_partial=config.TRANSLATION_FAIL_ON_PARTIAL,
        request_timeout=config.TRANSLATION_LLM_TIMEOUT,
    )


def split_batches(entries: Sequence[SubtitleEntry], batch_size: int) -> List[List[SubtitleEntry]]:
    batch_count = math.ceil(len(entries) / batch_size)
    return [list(entries[i * batch_size : (i + 1) * batch_size]) for i in range(batch_count)]


def to_payload(entry: SubtitleEntry) -> SubtitlePayload:
    return SubtitlePayload(
        index=entry.index,
        lines=[
            SubtitleLinePayload(items=[SubtitleItem(text=item.text) for item in line.items])
            for line in entry.lines
        ],
    )


def apply_translations(entries: Sequence[SubtitleEntry], translations: List[SubtitlePayload]) -> List[int]:
    """Overwrite run text in ``entries`` from ``translations`` matched by index.

    Lines or runs the translation does not cover are left as they were.
    Returns the indices of entries that received no translation.
    """
    by_index: Dict[int, SubtitlePayload] = {}
    for translation in sorted(translations, key=lambda item: item.index):
        by_index.setdefault(translation.index, translation)

    untranslated: List[int] = []
    for entry in entries:
        translation = by_index.get(entry.index)
        if translation is None:
            untranslated.append(entry.index)
            continue
        for line, translated_line in zip(entry.lines, translation.lines):
            for item, translated_item in zip(line.items, translated_line.items):
                item.text = translated_item.text
    return untranslated


class SubtitleTranslator:
    def __init__(
        self,
        translation_config: Optional[TranslationConfig] = None,
        provider: Optional[TranslationProvider] = None,
    ) -> None:
        self.config = translation_config or default_translation_config()
        self.provider = provider or TranslationClient(timeout=self.config.request_timeout)

    async def translate_entries(
        self,
        entries: Sequence[SubtitleEntry],
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> TranslationReport:
        batches = split_batches(entries, self.config.batch_size)
        total_batches = len(batches)
        if total_batches == 0:
            if on_progress is not None:
                on_progress(100.0)
            return TranslationReport(total_batches=0, failed_batches=0, untranslated_indices=[])

        semaphore = asyncio.Semaphore(self.config.concurrency_limit)
        results: List[SubtitlePayload] = []
        failed_batches = 0
        completed_batches = 0

        async def translate_batch(number: int, batch: List[SubtitleEntry]) -> None:
            nonlocal failed_batches, completed_batches
            try:
                async with semaphore:
                    logger.info("Batch %d / %d", number, total_batches)
                    translated = await self.provider.translate_batch(
                        [to_payload(entry) for entry in batch],
                        self.config.target_language,
                        self.config.model,
                    )
                results.extend(translated)
            except ProviderError as exc:
                failed_batches += 1
                logger.error(
                    "Error translating batch %d / %d (entries %d-%d): %s",
                    number,
                    total_batches,
                    batch[0].index,
                    batch[-1].index,
                    exc,
                )
            finally:
                completed_batches += 1
                if on_progress is not None:
                    on_progress(completed_batches / total_batches * 100.0)

        # wait for every batch before surfacing an unexpected error
        outcomes = await asyncio.gather(
            *(translate_batch(number, batch) for number, batch in enumerate(batches, start=1)),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        untranslated = apply_translations(entries, results)
        report = TranslationReport(
            total_batches=total_batches,
            failed_batches=failed_batches,
            untranslated_indices=untranslated,
        )
        if report.is_partial:
            logger.warning(
                "%d of %d batches failed; %d entries left untranslated",
                failed_batches,
                total_batches,
                len(untranslated),
            )
            if self.config.fail_on_partial:
                raise PartialTranslationError(failed_batches, total_batches)
        return report
