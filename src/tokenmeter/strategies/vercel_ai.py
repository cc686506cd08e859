from typing import Any, Mapping, Sequence

from tokenmeter.constants import (
    PROVIDER_ANTHROPIC,
    PROVIDER_GOOGLE,
    PROVIDER_OPENAI,
    PROVIDER_UNKNOWN,
    PROVIDER_VERCEL_AI,
)
from tokenmeter.models import UsageData
from tokenmeter.strategies.base import (
    as_number,
    as_str,
    get_field,
    has_field,
    is_object,
    request_param,
)

# model id prefix -> underlying provider
_MODEL_PREFIXES: "tuple[tuple[tuple[str, ...], str], ...]" = (
    (("gpt-", "o1", "o3"), PROVIDER_OPENAI),
    (("claude-",), PROVIDER_ANTHROPIC),
    (("gemini-",), PROVIDER_GOOGLE),
)


def infer_provider(model: "str") -> "str":
    for prefixes, provider in _MODEL_PREFIXES:
        if model.startswith(prefixes):
            return provider
    return PROVIDER_UNKNOWN


class VercelAIStrategy:
    """
    VercelAIStrategy handles aggregator results with camelCase
    promptTokens/completionTokens. The usage is attributed to the
    underlying provider, inferred from the model id unless the request
    model object names it.
    """

    provider = PROVIDER_VERCEL_AI

    def can_handle(self, method_path: "Sequence[str]", result: "Any") -> "bool":
        usage = get_field(result, "usage")
        return is_object(usage) and has_field(usage, "promptTokens")

    def extract(
        self,
        method_path: "Sequence[str]",
        result: "Any",
        args: "Sequence[Any]",
        kwargs: "Mapping[str, Any]",
    ) -> "UsageData | None":
        if not self.can_handle(method_path, result):
            return None

        usage = get_field(result, "usage")
        provider = PROVIDER_UNKNOWN
        model = PROVIDER_UNKNOWN

        response_model = as_str(get_field(get_field(result, "response"), "modelId"))
        if response_model:
            model = response_model
            provider = infer_provider(model)

        request_model = request_param(args, kwargs, "model")
        model = as_str(get_field(request_model, "modelId")) or model
        provider = as_str(get_field(request_model, "provider")) or provider

        return UsageData(
            provider=provider,
            model=model,
            input_units=as_number(get_field(usage, "promptTokens")),
            output_units=as_number(get_field(usage, "completionTokens")),
        )
