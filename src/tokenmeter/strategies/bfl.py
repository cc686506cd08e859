import re
from typing import Any, Mapping, Sequence

from tokenmeter.constants import DEFAULT_MODELS, PROVIDER_BFL
from tokenmeter.models import UsageData
from tokenmeter.strategies.base import (
    as_str,
    compact,
    get_field,
    has_field,
    is_object,
    request_param,
)

_ENDPOINT_MODEL = re.compile(r"/(flux-[\w.-]+)")


class BFLStrategy:
    """
    BFLStrategy handles Black Forest Labs results: a bare `id` plus a
    `sample` or `images` field. Anything with fal's camelCase requestId
    is rejected so the two are never confused.
    """

    provider = PROVIDER_BFL

    def can_handle(self, method_path: "Sequence[str]", result: "Any") -> "bool":
        if not is_object(result) or has_field(result, "requestId"):
            return False
        if not has_field(result, "id"):
            return False
        return (
            has_field(result, "sample")
            or has_field(result, "images")
            or has_field(get_field(result, "result"), "sample")
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

        output_units = 1
        images = get_field(result, "images")
        sample = get_field(result, "sample")
        if isinstance(images, (list, tuple)):
            output_units = len(images)
        elif isinstance(sample, (list, tuple)):
            output_units = len(sample)

        return UsageData(
            provider=PROVIDER_BFL,
            model=_resolve_model(args, kwargs),
            output_units=output_units,
            metadata=compact(
                {
                    "request_id": as_str(get_field(result, "id"))
                    or as_str(get_field(result, "request_id")),
                }
            ),
        )


def _resolve_model(args: "Sequence[Any]", kwargs: "Mapping[str, Any]") -> "str":
    model = as_str(request_param(args, kwargs, "model"))
    if model:
        return model

    # endpoints look like "/v1/flux-pro-1.1"
    endpoint = as_str(request_param(args, kwargs, "endpoint"))
    if endpoint:
        match = _ENDPOINT_MODEL.search(endpoint)
        if match:
            return match.group(1)

    return DEFAULT_MODELS[PROVIDER_BFL]
