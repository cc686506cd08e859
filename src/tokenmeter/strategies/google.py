from typing import Any, Mapping, Sequence

from tokenmeter.constants import PROVIDER_GOOGLE
from tokenmeter.models import UsageData
from tokenmeter.strategies.base import (
    as_number,
    as_str,
    compact,
    get_field,
    has_field,
    is_object,
    request_param,
)

_MODEL_PREFIXES = ("gemini-", "models/")


def usage_metadata(obj: "Any") -> "Any":
    """
    returns the usage metadata of a Gemini response when it carries a
    prompt token count (camelCase REST shape or snake_case SDK shape).
    """
    meta = get_field(obj, "usageMetadata", "usage_metadata")
    if not is_object(meta):
        return None
    if has_field(meta, "promptTokenCount") or has_field(meta, "prompt_token_count"):
        return meta
    return None


def _strip_models_prefix(model: "str") -> "str":
    return model[len("models/"):] if model.startswith("models/") else model


def _resolve_model(
    response: "Any",
    method_path: "Sequence[str]",
    args: "Sequence[Any]",
    kwargs: "Mapping[str, Any]",
) -> "str":
    model = (
        as_str(get_field(response, "modelVersion", "model_version"))
        or as_str(get_field(response, "model"))
        or as_str(request_param(args, kwargs, "model"))
    )
    if model:
        return _strip_models_prefix(model)

    # generative-model style calls sometimes pass the model id positionally
    if args and isinstance(args[0], str) and args[0].startswith(_MODEL_PREFIXES):
        return _strip_models_prefix(args[0])

    for segment in method_path:
        if segment.startswith(_MODEL_PREFIXES):
            return _strip_models_prefix(segment)

    return "unknown"


def _build_usage(
    response: "Any",
    method_path: "Sequence[str]",
    args: "Sequence[Any]",
    kwargs: "Mapping[str, Any]",
) -> "UsageData":
    meta = usage_metadata(response)
    return UsageData(
        provider=PROVIDER_GOOGLE,
        model=_resolve_model(response, method_path, args, kwargs),
        input_units=as_number(get_field(meta, "promptTokenCount", "prompt_token_count")),
        output_units=as_number(
            get_field(meta, "candidatesTokenCount", "candidates_token_count")
        ),
        cached_input_units=as_number(
            get_field(meta, "cachedContentTokenCount", "cached_content_token_count")
        ),
        metadata=compact(
            {
                "total_tokens": as_number(
                    get_field(meta, "totalTokenCount", "total_token_count")
                ),
            }
        ),
    )


class GoogleWrappedStrategy:
    """
    handles responses wrapped as result.response.usageMetadata. Must be
    tried before GoogleStrategy: the inner object alone would match it.
    """

    provider = PROVIDER_GOOGLE

    def can_handle(self, method_path: "Sequence[str]", result: "Any") -> "bool":
        response = get_field(result, "response")
        return is_object(response) and usage_metadata(response) is not None

    def extract(
        self,
        method_path: "Sequence[str]",
        result: "Any",
        args: "Sequence[Any]",
        kwargs: "Mapping[str, Any]",
    ) -> "UsageData | None":
        if not self.can_handle(method_path, result):
            return None
        return _build_usage(get_field(result, "response"), method_path, args, kwargs)


class GoogleStrategy:
    """
    handles Gemini / Vertex AI responses carrying usage metadata at the
    top level.
    """

    provider = PROVIDER_GOOGLE

    def can_handle(self, method_path: "Sequence[str]", result: "Any") -> "bool":
        return usage_metadata(result) is not None

    def extract(
        self,
        method_path: "Sequence[str]",
        result: "Any",
        args: "Sequence[Any]",
        kwargs: "Mapping[str, Any]",
    ) -> "UsageData | None":
        if not self.can_handle(method_path, result):
            return None
        return _build_usage(result, method_path, args, kwargs)
