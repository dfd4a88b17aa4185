from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    EXTRACTING = "extracting"
    TRANSLATING = "translating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class JobResult(BaseModel):
    output_path: Optional[str] = None
    error_message: Optional[str] = None


class JobModel(BaseModel):
    id: str
    status: JobStatus
    progress: float
    source_path: str
    track_index: int
    result: Optional[JobResult] = None
    created_at: datetime
    updated_at: datetime


class TranslationConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    batch_size: int = Field(default=30, ge=1)
    concurrency_limit: int = Field(default=5, ge=1)
    target_language: str = "polish"
    model: str = "gpt-4o-mini"
    fail_on_partial: bool = False
    request_timeout: float = Field(default=120.0, gt=0)


# Provider request/response shape. Strict structured outputs require every
# object to forbid additional properties.


class SubtitleItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str


class SubtitleLinePayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    items: List[SubtitleItem]


class SubtitlePayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    index: int
    lines: List[SubtitleLinePayload]


class TranslationResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    subtitles: List[SubtitlePayload]


class TranslationReport(BaseModel):
    total_batches: int
    failed_batches: int
    untranslated_indices: List[int]

    @property
    def is_partial(self) -> bool:
        return self.failed_batches > 0
