import logging

from .config import Settings
from .kie import KieClient
from .pipeline.angles import KieAngleSynthesizer, PlaceholderAngleSynthesizer
from .pipeline.animate import KieVideoSynthesizer, PlaceholderVideoSynthesizer
from .pipeline.enhance import GeminiEnhancer, PassthroughEnhancer
from .pipeline.orchestrator import VideoGenerationService
from .pipeline.storage import ArtifactStore

logger = logging.getLogger(__name__)


class ProviderFactory:
    @staticmethod
    def get_enhancer(settings: Settings):
        if settings.GEMINI_API_KEY:
            return GeminiEnhancer(settings.GEMINI_API_KEY)
        logger.warning("GEMINI_API_KEY not set, images will not be enhanced")
        return PassthroughEnhancer()

    @staticmethod
    def get_angle_synthesizer(settings: Settings):
        if settings.KIE_API_KEY:
            return KieAngleSynthesizer(KieClient(settings.KIE_API_KEY))
        logger.warning("KIE_API_KEY not set, using placeholder side angles")
        return PlaceholderAngleSynthesizer()

    @staticmethod
    def get_video_synthesizer(settings: Settings):
        if settings.KIE_API_KEY:
            return KieVideoSynthesizer(KieClient(settings.KIE_API_KEY))
        logger.warning("KIE_API_KEY not set, using placeholder video")
        return PlaceholderVideoSynthesizer()

    @classmethod
    def build_service(cls, settings: Settings) -> VideoGenerationService:
        return VideoGenerationService(
            store=ArtifactStore(),
            enhancer=cls.get_enhancer(settings),
            angle_synthesizer=cls.get_angle_synthesizer(settings),
            video_synthesizer=cls.get_video_synthesizer(settings),
        )
