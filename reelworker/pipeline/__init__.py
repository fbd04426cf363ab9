"""
Garment Video Pipeline

Front/back clothing photos → upload → studio enhancement → side-angle
synthesis → turntable video, with live progress over server-sent events and
rollback of every upload when a run fails.
"""

from .orchestrator import VideoGenerationService, PipelineRun
from .routes import pipeline_router
from .models import PipelineStatus, ProgressEvent

__all__ = [
    "VideoGenerationService",
    "PipelineRun",
    "pipeline_router",
    "PipelineStatus",
    "ProgressEvent",
]
