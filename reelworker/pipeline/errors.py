"""
Exceptions raised inside a pipeline run.

All of them are caught at the orchestrator boundary and turned into the
run's terminal error event.
"""


class PipelineError(Exception):
    """Base class for fatal run errors."""


class ValidationFailure(PipelineError):
    """Missing or invalid input. Raised before any upload."""


class UploadFailure(PipelineError):
    def __init__(self, bucket: str, key: str, detail: str):
        self.bucket = bucket
        self.key = key
        self.detail = detail
        super().__init__(f"Failed to upload to {bucket}: {detail}")


class SynthesisFailure(PipelineError):
    def __init__(self, stage: str, detail: str):
        self.stage = stage
        self.detail = detail
        super().__init__(f"{stage.capitalize()} synthesis failed: {detail}")


class ChannelClosedError(RuntimeError):
    """A write was attempted on a progress channel that is already closed."""
