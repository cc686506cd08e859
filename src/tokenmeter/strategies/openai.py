from typing import Any, Mapping, Sequence

from tokenmeter.constants import PROVIDER_OPENAI
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


class OpenAIStrategy:
    """
    OpenAIStrategy handles chat/completions/embeddings responses, whose
    usage carries snake_case prompt_tokens/completion_tokens, and
    Responses API objects, which report total_tokens next to
    input_tokens/output_tokens.
    """

    provider = PROVIDER_OPENAI

    def can_handle(self, method_path: "Sequence[str]", result: "Any") -> "bool":
        usage = get_field(result, "usage")
        return is_object(usage) and (
            has_field(usage, "prompt_tokens") or has_field(usage, "total_tokens")
        )

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
        model = as_str(get_field(result, "model")) or as_str(
            request_param(args, kwargs, "model")
        )

        input_tokens = as_number(get_field(usage, "prompt_tokens"))
        if input_tokens is None:
            input_tokens = as_number(get_field(usage, "input_tokens"))

        output_tokens = as_number(get_field(usage, "completion_tokens"))
        if output_tokens is None:
            output_tokens = as_number(get_field(usage, "output_tokens"))

        return UsageData(
            provider=PROVIDER_OPENAI,
            model=model or "unknown",
            input_units=input_tokens,
            output_units=output_tokens,
            cached_input_units=_cached_tokens(usage),
            metadata=compact({"total_tokens": as_number(get_field(usage, "total_tokens"))}),
        )


def _cached_tokens(usage: "Any") -> "int | float | None":
    cached = as_number(get_field(usage, "cached_tokens"))
    if cached is not None:
        return cached

    # newer responses nest it under *_tokens_details
    for details_key in ("prompt_tokens_details", "input_tokens_details"):
        details = get_field(usage, details_key)
        cached = as_number(get_field(details, "cached_tokens"))
        if cached is not None:
            return cached

    return None
