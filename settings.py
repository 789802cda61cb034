from config.loader import get_config_loader

# Get the config loader instance
config = get_config_loader()

LOG_LEVEL = config.get("LOG_LEVEL", "warning")

# On-Demand chat API
ONDEMAND_BASE_URL = config.get("ONDEMAND_BASE_URL", "https://api.on-demand.io/chat/v1")
ONDEMAND_API_KEY = config.get("ONDEMAND_API_KEY", "")
# Sessions are created for a single fixed external user with no agents attached
EXTERNAL_USER_ID = config.get("ONDEMAND_EXTERNAL_USER_ID", "1")

# Query defaults
ENDPOINT_ID = config.get("ONDEMAND_ENDPOINT_ID", "predefined-claude-4-sonnet")
REASONING_MODE = config.get("ONDEMAND_REASONING_MODE", "deepturbo")
# The API expects either agentIds or pluginIds; the client always sends plugins
PLUGIN_IDS = config.get(
    "ONDEMAND_PLUGIN_IDS",
    ["plugin-1712327325", "plugin-1713962163", "plugin-1718116202"],
)

# Timeout configuration
# Connection timeout: Time to establish TCP connection
CONNECT_TIMEOUT = config.get("CONNECT_TIMEOUT", 10.0)
# Read timeout: Time between receiving data chunks, important for detecting stalled streams
READ_TIMEOUT = config.get("READ_TIMEOUT", 60.0)
# Request timeout: Total timeout for session creation
REQUEST_TIMEOUT = config.get("REQUEST_TIMEOUT", 30.0)
# Stream timeout: Total timeout for streaming queries (agents can take a while)
STREAM_TIMEOUT = config.get("STREAM_TIMEOUT", 600.0)

# Stream tracing / debugging
STREAM_TRACE_ENABLED = config.get("STREAM_TRACE_ENABLED", False)
STREAM_TRACE_DIR = config.get("STREAM_TRACE_DIR", "stream_traces")
STREAM_TRACE_MAX_BYTES = config.get("STREAM_TRACE_MAX_BYTES", 262144)
