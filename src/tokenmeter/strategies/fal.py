from typing import Any, Mapping, Sequence

from tokenmeter.constants import PROVIDER_FAL
from tokenmeter.models import UsageData
from tokenmeter.strategies.base import (
    as_number,
    as_str,
    compact,
    get_field,
    has_field,
    is_object,
)

ENDPOINT_PREFIX = "fal-ai/"


class FalStrategy:
    """
    FalStrategy handles queue results, recognized by their request id.
    One output unit per generated image, or the duration in seconds
    for video; a bare request counts as one unit.
    """

    provider = PROVIDER_FAL

    def can_handle(self, method_path: "Sequence[str]", result: "Any") -> "bool":
        return is_object(result) and (
            has_field(result, "requestId") or has_field(result, "request_id")
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

        data = get_field(result, "data")
        if not is_object(data):
            data = result

        output_units: "float" = 1
        usage_by_type: "dict[str, float] | None" = None

        images = get_field(data, "images")
        if isinstance(images, (list, tuple)):
            output_units = len(images)
            usage_by_type = {"output_images": output_units}
        elif get_field(data, "image"):
            output_units = 1
            usage_by_type = {"output_images": 1}

        duration = as_number(get_field(data, "duration"))
        if get_field(data, "video") and duration is not None:
            output_units = duration or 1
            usage_by_type = {"output_seconds": output_units}

        return UsageData(
            provider=PROVIDER_FAL,
            model=_endpoint_model(args, kwargs),
            output_units=output_units,
            usage_by_type=usage_by_type,
            metadata=compact(
                {
                    "request_id": as_str(get_field(result, "requestId", "request_id")),
                }
            ),
        )


def _endpoint_model(args: "Sequence[Any]", kwargs: "Mapping[str, Any]") -> "str":
    # subscribe("fal-ai/flux-pro", ...) or subscribe(application="fal-ai/flux-pro")
    endpoint = None
    if args and isinstance(args[0], str):
        endpoint = args[0]
    else:
        endpoint = as_str(kwargs.get("application")) or as_str(kwargs.get("endpoint_id"))

    if not endpoint:
        return "unknown"
    return endpoint.replace(ENDPOINT_PREFIX, "", 1)
