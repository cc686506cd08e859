from typing import Any

from tokenmeter.constants import (
    PROVIDER_ANTHROPIC,
    PROVIDER_BEDROCK,
    PROVIDER_ELEVENLABS,
    PROVIDER_FAL,
    PROVIDER_GOOGLE,
    PROVIDER_GOOGLE_VERTEX,
    PROVIDER_OPENAI,
    PROVIDER_UNKNOWN,
)
from tokenmeter.registry import detect_provider_from_registry
from tokenmeter.strategies.base import get_field, is_object


def _member(client: "Any", *names: "str") -> "Any":
    for name in names:
        value = getattr(client, name, None)
        if value is not None:
            return value
    return None


def _is_vertex(client: "Any") -> "bool":
    # google-genai keeps the flags on the api client
    for holder in (client, getattr(client, "_api_client", None)):
        if holder is None:
            continue
        if getattr(holder, "vertexai", False) is True:
            return True
        if getattr(holder, "project", None) and getattr(holder, "location", None):
            return True
    return False


def detect_provider(client: "Any") -> "str":
    """
    determines which provider a client belongs to. First match wins:
     - the explicit `__tokenmeter_provider__` tag
     - a registered provider's detect predicate
     - the built-in structural checks below
    Unrecognized clients are reported as "unknown".
    """
    if client is None or not is_object(client):
        return PROVIDER_UNKNOWN

    registered = detect_provider_from_registry(client)
    if registered:
        return registered

    chat = _member(client, "chat")
    if chat is not None and get_field(chat, "completions") is not None:
        return PROVIDER_OPENAI

    messages = _member(client, "messages")
    if messages is not None and is_object(messages) and not callable(messages):
        return PROVIDER_ANTHROPIC

    if callable(_member(client, "subscribe")):
        return PROVIDER_FAL

    tts = _member(client, "text_to_speech", "textToSpeech")
    if tts is not None and is_object(tts):
        return PROVIDER_ELEVENLABS

    if callable(_member(client, "converse")) and callable(_member(client, "invoke_model")):
        return PROVIDER_BEDROCK

    if callable(_member(client, "get_generative_model", "getGenerativeModel")):
        return PROVIDER_GOOGLE

    if callable(_member(client, "generate_content", "generateContent")) and (
        _member(client, "model", "model_name") is not None
    ):
        return PROVIDER_GOOGLE

    models = _member(client, "models")
    if models is not None and get_field(models, "generate_content", "generateContent") is not None:
        if _is_vertex(client):
            return PROVIDER_GOOGLE_VERTEX
        return PROVIDER_GOOGLE

    return PROVIDER_UNKNOWN
