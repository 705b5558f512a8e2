"""
Error taxonomy for the ingestion pipeline.

Each error carries the HTTP status it maps to, so request handlers and the
queue worker can share one set of exceptions. The worker stores `str(exc)`
as the job error text.
"""
from __future__ import annotations


class PipelineError(Exception):
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PipelineError):
    """Caller-correctable state conflict (already processed / skipped / queued)."""

    status_code = 409


class AlreadyProcessedError(ValidationError):
    def __init__(self, source_id: str):
        super().__init__("Session already processed")
        self.source_id = source_id


class SessionSkippedError(ValidationError):
    def __init__(self, source_id: str):
        super().__init__("Session was skipped")
        self.source_id = source_id


class AlreadyQueuedError(ValidationError):
    def __init__(self, source_id: str):
        super().__init__("Session already queued")
        self.source_id = source_id


class ConfigError(PipelineError):
    status_code = 400


class NotConfiguredError(ConfigError):
    pass


class UpstreamFetchError(PipelineError):
    status_code = 502


class TranscriptTooShortError(UpstreamFetchError):
    def __init__(self, length: int = 0):
        super().__init__("Failed to fetch transcript or transcript too short")
        self.length = length


class AnalysisError(PipelineError):
    status_code = 502


class RenderError(PipelineError):
    status_code = 500


class NotFoundError(PipelineError):
    status_code = 404


class InvalidStateError(PipelineError):
    status_code = 400


class InvalidDiagramError(PipelineError):
    status_code = 400
