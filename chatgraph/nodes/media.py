"""Media nodes: image analysis and voice transcription."""

import logging

from chatgraph.graph.node import NodeKind, RoutingConfig, StepResult
from chatgraph.nodes.base import NodeContext, NodeHandler

logger = logging.getLogger(__name__)


class SpeechConfig(RoutingConfig):
    language: str | None = None


def _media_url(ctx: NodeContext, *keys: str) -> str | None:
    for key in keys:
        value = ctx.metadata.get(key)
        if isinstance(value, str) and value:
            return value
    return None


class VisionNode(NodeHandler):
    kind = NodeKind.VISION

    async def execute(self, ctx: NodeContext) -> StepResult:
        image_url = _media_url(ctx, "media_url", "image_url")
        if not image_url:
            return StepResult(data={}, error="Missing image URL")

        adapter = ctx.capabilities.vision
        if adapter is None:
            return StepResult(data={}, error="No vision provider configured")

        try:
            result = await adapter.analyze(image_url)
        except Exception as e:
            logger.error(f"Image processing error: {e}")
            return StepResult(data={}, error=str(e) or type(e).__name__)

        analysis = result.model_dump(exclude={"tokens_used"}, exclude_none=True)
        return StepResult(
            data={"analysis": analysis, "image_url": image_url},
            tokens_used=result.tokens_used,
        )


class SpeechNode(NodeHandler):
    """
    Transcribes a voice note.

    On success the transcript replaces the message every later node sees, and
    the detected language (if any) becomes the run's language.
    """

    kind = NodeKind.SPEECH
    config_model = SpeechConfig

    async def execute(self, ctx: NodeContext) -> StepResult:
        config: SpeechConfig = self.parse_config(ctx.node)
        audio_url = _media_url(ctx, "voice_url", "audio_url", "media_url")
        if not audio_url:
            return StepResult(data={}, error="Missing audio URL")

        adapter = ctx.capabilities.transcription
        if adapter is None:
            return StepResult(data={}, error="No transcription provider configured")

        try:
            transcript = await adapter.transcribe(
                audio_url, language_hint=config.language or ctx.run.language
            )
        except Exception as e:
            logger.error(f"Voice processing error: {e}")
            return StepResult(data={}, error=str(e) or type(e).__name__)

        text = transcript.text.strip()
        if not text:
            return StepResult(data={"audio_url": audio_url}, error="Empty transcription")

        logger.info(f"   Transcribed voice note ({len(text)} chars)")
        return StepResult(
            data={"transcription": text, "language": transcript.language, "audio_url": audio_url},
            effective_message=text,
            language=transcript.language,
        )
