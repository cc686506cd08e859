from tokenmeter.pricing.models import PricingManifest

# rates in USD, runtime manifest format. Regenerate with
# `python -m tokenmeter build-manifest <catalog dir>` when catalogs change.
BUNDLED_MANIFEST_DATA: "dict" = {
    "version": "1.0.0",
    "updatedAt": "2025-06-01T00:00:00+00:00",
    "providers": {
        "openai": {
            "gpt-4o": {"unit": "1m_tokens", "input": 2.5, "output": 10.0, "cachedInput": 1.25},
            "gpt-4o-mini": {"unit": "1m_tokens", "input": 0.15, "output": 0.6, "cachedInput": 0.075},
            "gpt-4.1": {"unit": "1m_tokens", "input": 2.0, "output": 8.0, "cachedInput": 0.5},
            "gpt-4.1-mini": {"unit": "1m_tokens", "input": 0.4, "output": 1.6, "cachedInput": 0.1},
            "gpt-4.1-nano": {"unit": "1m_tokens", "input": 0.1, "output": 0.4, "cachedInput": 0.025},
            "gpt-4-turbo": {"unit": "1m_tokens", "input": 10.0, "output": 30.0},
            "gpt-3.5-turbo": {"unit": "1m_tokens", "input": 0.5, "output": 1.5},
            "o1": {"unit": "1m_tokens", "input": 15.0, "output": 60.0, "cachedInput": 7.5},
            "o1-mini": {"unit": "1m_tokens", "input": 1.1, "output": 4.4, "cachedInput": 0.55},
            "o3": {"unit": "1m_tokens", "input": 2.0, "output": 8.0, "cachedInput": 0.5},
            "o3-mini": {"unit": "1m_tokens", "input": 1.1, "output": 4.4, "cachedInput": 0.55},
            "o4-mini": {"unit": "1m_tokens", "input": 1.1, "output": 4.4, "cachedInput": 0.275},
            "text-embedding-3-small": {"unit": "1m_tokens", "input": 0.02},
            "text-embedding-3-large": {"unit": "1m_tokens", "input": 0.13},
            "text-embedding-ada-002": {"unit": "1m_tokens", "input": 0.1},
            "dall-e-3": {"unit": "image", "cost": 0.04},
            "dall-e-2": {"unit": "image", "cost": 0.02},
            "gpt-image-1": {
                "unit": "1m_tokens",
                "input": 5.0,
                "output": 40.0,
                "cachedInput": 1.25,
            },
            "tts-1": {"unit": "1k_characters", "input": 0.015},
            "tts-1-hd": {"unit": "1k_characters", "input": 0.03},
            "whisper-1": {"unit": "minute", "input": 0.006},
        },
        "anthropic": {
            "claude-opus-4": {"unit": "1m_tokens", "input": 15.0, "output": 75.0, "cachedInput": 1.5},
            "claude-opus-4-20250514": {"unit": "1m_tokens", "input": 15.0, "output": 75.0, "cachedInput": 1.5},
            "claude-sonnet-4": {"unit": "1m_tokens", "input": 3.0, "output": 15.0, "cachedInput": 0.3},
            "claude-sonnet-4-20250514": {"unit": "1m_tokens", "input": 3.0, "output": 15.0, "cachedInput": 0.3},
            "claude-3-7-sonnet": {"unit": "1m_tokens", "input": 3.0, "output": 15.0, "cachedInput": 0.3},
            "claude-3-7-sonnet-20250219": {"unit": "1m_tokens", "input": 3.0, "output": 15.0, "cachedInput": 0.3},
            "claude-3-5-sonnet": {"unit": "1m_tokens", "input": 3.0, "output": 15.0, "cachedInput": 0.3},
            "claude-3-5-sonnet-20241022": {"unit": "1m_tokens", "input": 3.0, "output": 15.0, "cachedInput": 0.3},
            "claude-3-5-haiku": {"unit": "1m_tokens", "input": 0.8, "output": 4.0, "cachedInput": 0.08},
            "claude-3-5-haiku-20241022": {"unit": "1m_tokens", "input": 0.8, "output": 4.0, "cachedInput": 0.08},
            "claude-3-haiku": {"unit": "1m_tokens", "input": 0.25, "output": 1.25, "cachedInput": 0.03},
            "claude-3-haiku-20240307": {"unit": "1m_tokens", "input": 0.25, "output": 1.25, "cachedInput": 0.03},
            "claude-3-opus": {"unit": "1m_tokens", "input": 15.0, "output": 75.0, "cachedInput": 1.5},
        },
        "google": {
            "gemini-2.5-pro": {"unit": "1m_tokens", "input": 1.25, "output": 10.0, "cachedInput": 0.31},
            "gemini-2.5-flash": {"unit": "1m_tokens", "input": 0.3, "output": 2.5, "cachedInput": 0.075},
            "gemini-2.0-flash": {"unit": "1m_tokens", "input": 0.1, "output": 0.4, "cachedInput": 0.025},
            "gemini-2.0-flash-lite": {"unit": "1m_tokens", "input": 0.075, "output": 0.3},
            "gemini-1.5-pro": {"unit": "1m_tokens", "input": 1.25, "output": 5.0, "cachedInput": 0.3125},
            "gemini-1.5-flash": {"unit": "1m_tokens", "input": 0.075, "output": 0.3, "cachedInput": 0.01875},
            "text-embedding-004": {"unit": "1m_tokens", "input": 0.0},
            "imagen-3.0-generate-002": {"unit": "image", "cost": 0.03},
        },
        "bedrock": {
            "anthropic.claude-opus-4": {"unit": "1m_tokens", "input": 15.0, "output": 75.0},
            "anthropic.claude-sonnet-4": {"unit": "1m_tokens", "input": 3.0, "output": 15.0},
            "anthropic.claude-3-7-sonnet": {"unit": "1m_tokens", "input": 3.0, "output": 15.0},
            "anthropic.claude-3-5-sonnet": {"unit": "1m_tokens", "input": 3.0, "output": 15.0},
            "anthropic.claude-3-5-haiku": {"unit": "1m_tokens", "input": 0.8, "output": 4.0},
            "anthropic.claude-3-haiku": {"unit": "1m_tokens", "input": 0.25, "output": 1.25},
            "amazon.nova-pro": {"unit": "1m_tokens", "input": 0.8, "output": 3.2},
            "amazon.nova-lite": {"unit": "1m_tokens", "input": 0.06, "output": 0.24},
            "amazon.nova-micro": {"unit": "1m_tokens", "input": 0.035, "output": 0.14},
            "meta.llama3-1-70b-instruct": {"unit": "1m_tokens", "input": 0.72, "output": 0.72},
            "meta.llama3-1-8b-instruct": {"unit": "1m_tokens", "input": 0.22, "output": 0.22},
        },
        "elevenlabs": {
            "eleven_multilingual_v2": {"unit": "1k_characters", "input": 0.3},
            "eleven_turbo_v2_5": {"unit": "1k_characters", "input": 0.15},
            "eleven_flash_v2_5": {"unit": "1k_characters", "input": 0.15},
            "eleven_monolingual_v1": {"unit": "1k_characters", "input": 0.3},
        },
        "fal": {
            "flux-pro": {"unit": "image", "cost": 0.05},
            "flux-pro/v1.1": {"unit": "image", "cost": 0.04},
            "flux-pro/v1.1-ultra": {"unit": "image", "cost": 0.06},
            "flux/dev": {"unit": "image", "cost": 0.025},
            "flux/schnell": {"unit": "image", "cost": 0.003},
            "fast-sdxl": {"unit": "image", "cost": 0.002},
            "kling-video/v1.6/standard/text-to-video": {"unit": "second", "output": 0.05},
            "minimax/video-01": {"unit": "request", "cost": 0.5},
        },
        "bfl": {
            "flux-pro": {"unit": "image", "cost": 0.05},
            "flux-pro-1.1": {"unit": "image", "cost": 0.04},
            "flux-pro-1.1-ultra": {"unit": "image", "cost": 0.06},
            "flux-dev": {"unit": "image", "cost": 0.025},
            "flux-kontext-pro": {"unit": "image", "cost": 0.04},
        },
    },
}


def bundled_manifest() -> "PricingManifest":
    """
    returns a fresh copy of the rate table shipped with the package.
    """
    return PricingManifest.from_dict(BUNDLED_MANIFEST_DATA)
