from typing import Any, Mapping, Sequence

from tokenmeter.constants import PROVIDER_ANTHROPIC
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


class AnthropicStrategy:
    provider = PROVIDER_ANTHROPIC

    def can_handle(self, method_path: "Sequence[str]", result: "Any") -> "bool":
        usage = get_field(result, "usage")
        return is_object(usage) and has_field(usage, "input_tokens")

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

        # cache writes are reported, not priced
        return UsageData(
            provider=PROVIDER_ANTHROPIC,
            model=model or "unknown",
            input_units=as_number(get_field(usage, "input_tokens")),
            output_units=as_number(get_field(usage, "output_tokens")),
            cached_input_units=as_number(get_field(usage, "cache_read_input_tokens")),
            metadata=compact(
                {
                    "cache_creation_tokens": as_number(
                        get_field(usage, "cache_creation_input_tokens")
                    ),
                }
            ),
        )
