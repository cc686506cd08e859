PACKAGE_NAME = "tokenmeter"
VERSION = "0.9.0"

PROVIDER_OPENAI = "openai"
PROVIDER_ANTHROPIC = "anthropic"
PROVIDER_GOOGLE = "google"
PROVIDER_GOOGLE_VERTEX = "google-vertex"
PROVIDER_BEDROCK = "bedrock"
PROVIDER_FAL = "fal"
PROVIDER_ELEVENLABS = "elevenlabs"
PROVIDER_BFL = "bfl"
PROVIDER_VERCEL_AI = "vercel-ai"
PROVIDER_UNKNOWN = "unknown"

PROVIDERS: "tuple[str, ...]" = (
    PROVIDER_OPENAI,
    PROVIDER_ANTHROPIC,
    PROVIDER_GOOGLE,
    PROVIDER_GOOGLE_VERTEX,
    PROVIDER_BEDROCK,
    PROVIDER_FAL,
    PROVIDER_ELEVENLABS,
    PROVIDER_BFL,
    PROVIDER_VERCEL_AI,
    PROVIDER_UNKNOWN,
)

# used when neither the request nor the response names a model
DEFAULT_MODELS: "dict[str, str]" = {
    PROVIDER_ELEVENLABS: "eleven_multilingual_v2",
    PROVIDER_BFL: "flux-pro",
}

# attribute a caller can set on a client to force the provider id
TOKENMETER_PROVIDER = "__tokenmeter_provider__"

# methods that hand back a sub-client: no span, result gets wrapped
FACTORY_METHODS: "frozenset[str]" = frozenset(
    {
        "getGenerativeModel",
        "get_generative_model",
        "getModel",
        "get_model",
        "startChat",
        "start_chat",
        "with_options",
    }
)

# never intercepted, read straight from the target
BLOCKED_PROPERTIES: "frozenset[str]" = frozenset(
    {
        "__class__",
        "__dict__",
        "__globals__",
        "__builtins__",
        "__subclasses__",
        "__mro__",
        "__bases__",
        "__code__",
        "__closure__",
        "__getattribute__",
        "__setattr__",
        "__delattr__",
        "__reduce__",
        "__reduce_ex__",
        "__init_subclass__",
    }
)

# keys that mark a finished API response rather than a sub-client
RESPONSE_KEYS: "tuple[str, ...]" = (
    "usage",
    "usageMetadata",
    "usage_metadata",
    "choices",
    "content",
    "candidates",
    "response",
    "id",
)

# members that mark an object as a further-callable client or session
CLIENT_KEYS: "tuple[str, ...]" = (
    "generate_content",
    "generateContent",
    "generate_content_stream",
    "generateContentStream",
    "chat",
    "create",
    "messages",
    "embed_content",
    "embedContent",
    "count_tokens",
    "countTokens",
    "start_chat",
    "startChat",
    "send_message",
    "sendMessage",
)

# chunk fields that can carry usage during streaming
STREAM_USAGE_KEYS: "tuple[str, ...]" = (
    "usage",
    "usageMetadata",
    "usage_metadata",
    "response",
    "message",
)

# span attribute names
ATTR_COST_USD = "tokenmeter.cost_usd"
ATTR_PROVIDER = "tokenmeter.provider"
ATTR_MODEL = "tokenmeter.model"
ATTR_UNIT = "tokenmeter.unit"
ATTR_INPUT_UNITS = "tokenmeter.input_units"
ATTR_OUTPUT_UNITS = "tokenmeter.output_units"
ATTR_ORG_ID = "org.id"
ATTR_USER_ID = "user.id"
ATTR_WORKFLOW_ID = "workflow.id"

GEN_AI_INPUT_TOKENS = "gen_ai.usage.input_tokens"
GEN_AI_OUTPUT_TOKENS = "gen_ai.usage.output_tokens"
GEN_AI_REQUEST_MODEL = "gen_ai.request.model"
GEN_AI_SYSTEM = "gen_ai.system"

RPC_SERVICE = "rpc.service"
RPC_METHOD = "rpc.method"
