import re
from typing import Any, Mapping, Sequence

from tokenmeter.constants import PROVIDER_BEDROCK
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

_REGION_PREFIX = re.compile(r"^[a-z]{2}\.")
_VERSION_SUFFIX = re.compile(r"-v\d+:\d+$")
_DATE_SUFFIX = re.compile(r"-\d{8}$")


def canonical_model_id(model_id: "str") -> "str":
    """
    strips the region prefix, the version suffix and the date suffix,
    in that order:
    "us.anthropic.claude-sonnet-4-20250514-v1:0" -> "anthropic.claude-sonnet-4"
    """
    parsed = _REGION_PREFIX.sub("", model_id)
    parsed = _VERSION_SUFFIX.sub("", parsed)
    return _DATE_SUFFIX.sub("", parsed)


class BedrockStrategy:
    """
    BedrockStrategy handles Converse responses. The camelCase usage
    keys alone could collide with other SDKs, so a model id or a
    request metadata envelope must be present too.
    """

    provider = PROVIDER_BEDROCK

    def can_handle(self, method_path: "Sequence[str]", result: "Any") -> "bool":
        usage = get_field(result, "usage")
        if not is_object(usage) or not has_field(usage, "inputTokens"):
            return False
        return (
            has_field(result, "modelId")
            or has_field(result, "$metadata")
            or has_field(result, "ResponseMetadata")
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
        model_id = (
            as_str(get_field(result, "modelId"))
            or as_str(request_param(args, kwargs, "modelId"))
            or "unknown"
        )

        return UsageData(
            provider=PROVIDER_BEDROCK,
            model=canonical_model_id(model_id),
            input_units=as_number(get_field(usage, "inputTokens")),
            output_units=as_number(get_field(usage, "outputTokens")),
            metadata=compact(
                {
                    "original_model_id": model_id,
                    "request_id": _request_id(result),
                }
            ),
        )


def _request_id(result: "Any") -> "str | None":
    # JS SDK: $metadata.requestId, boto3: ResponseMetadata.RequestId
    request_id = as_str(get_field(get_field(result, "$metadata"), "requestId"))
    if request_id:
        return request_id
    return as_str(get_field(get_field(result, "ResponseMetadata"), "RequestId"))
