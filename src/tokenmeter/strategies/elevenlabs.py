from typing import Any, Mapping, Sequence

from tokenmeter.constants import DEFAULT_MODELS, PROVIDER_ELEVENLABS
from tokenmeter.models import UsageData
from tokenmeter.strategies.base import as_str, get_field

# the audio payload is opaque, so calls are recognized by path alone
TTS_PATH_SEGMENTS: "frozenset[str]" = frozenset(
    {"textToSpeech", "text_to_speech", "generate", "convert"}
)


class ElevenLabsStrategy:
    """
    ElevenLabsStrategy bills text-to-speech by input characters, read
    from the request since the response is audio.
    """

    provider = PROVIDER_ELEVENLABS

    def can_handle(self, method_path: "Sequence[str]", result: "Any") -> "bool":
        return any(segment in TTS_PATH_SEGMENTS for segment in method_path)

    def extract(
        self,
        method_path: "Sequence[str]",
        result: "Any",
        args: "Sequence[Any]",
        kwargs: "Mapping[str, Any]",
    ) -> "UsageData | None":
        if not self.can_handle(method_path, result):
            return None

        options = _options(args)
        text = as_str(kwargs.get("text")) or as_str(get_field(options, "text")) or ""
        model = (
            as_str(kwargs.get("model_id"))
            or as_str(kwargs.get("modelId"))
            or as_str(get_field(options, "model_id", "modelId"))
            or DEFAULT_MODELS[PROVIDER_ELEVENLABS]
        )

        return UsageData(
            provider=PROVIDER_ELEVENLABS,
            model=model,
            input_units=len(text),
            metadata={"character_count": len(text)},
        )


def _options(args: "Sequence[Any]") -> "Any":
    # convert(voice_id, options) vs generate(options)
    if len(args) >= 2:
        return args[1]
    if len(args) == 1:
        return args[0]
    return None
