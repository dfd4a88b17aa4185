from typing import Optional


class JobNotFoundError(KeyError):
    def __init__(self, job_id: str) -> None:
        super().__init__(job_id)
        self.job_id = job_id

    def __str__(self) -> str:
        return f"job not found: {self.job_id}"


class SourceNotFoundError(FileNotFoundError):
    pass


class UnsupportedSourceError(ValueError):
    pass


class InvalidTrackIndexError(ValueError):
    def __init__(self, track_index: int, track_count: int) -> None:
        super().__init__(f"invalid track index {track_index} (file has {track_count} tracks)")
        self.track_index = track_index
        self.track_count = track_count


class ExternalToolError(RuntimeError):
    def __init__(self, message: str, stderr: Optional[str] = None) -> None:
        super().__init__(message)
        self.stderr = stderr


class ProviderError(RuntimeError):
    pass


class PartialTranslationError(RuntimeError):
    def __init__(self, failed_batches: int, total_batches: int) -> None:
        super().__init__(f"{failed_batches} of {total_batches} translation batches failed")
        self.failed_batches = failed_batches
        self.total_batches = total_batches


class PipelineStepError(RuntimeError):
    """Failure of one orchestrator step, carrying the step name and its cause."""

    def __init__(self, step: str, cause: BaseException, context: Optional[str] = None) -> None:
        message = f"error {step}: {cause}"
        if context:
            message = f"{message} ({context})"
        super().__init__(message)
        self.step = step
        self.cause = cause
