"""Shared runtime constants for the ThinkDrop client."""

PROTOCOL_VERSION = "mcp.v1"

DEFAULT_SERVICE_URLS: dict[str, str] = {
    "conversation": "http://localhost:3004",
    "user-memory": "http://localhost:3001",
    "web-search": "http://localhost:3002",
    "command": "http://localhost:3007",
    "screen-intelligence": "http://localhost:3008",
    "phi4": "http://localhost:3005",
    "coreference": "http://localhost:3006",
}
DEFAULT_API_KEY_HEADER_SERVICES = ["conversation"]
DEFAULT_RPC_TIMEOUT = 10.0
DEFAULT_HEALTH_TIMEOUT = 3.0
HEALTH_PATHS = ("/service.health", "/health")
HEALTHY_STATUSES = frozenset({"up", "healthy", "ok"})

DEFAULT_BRIDGE_URL = "ws://localhost:4000/ws/stream"
DEFAULT_BRIDGE_USER_ID = "thinkdrop_electron"
DEFAULT_BRIDGE_MAX_RECONNECTS = 5
DEFAULT_BRIDGE_RECONNECT_BASE = 2.0
DEFAULT_BRIDGE_CONNECT_TIMEOUT = 5.0
DEFAULT_BRIDGE_PROVIDER = "openai"
DEFAULT_BRIDGE_TEMPERATURE = 0.7
DEFAULT_BRIDGE_TASK_TYPE = "ask"

DEFAULT_CLIPBOARD_POLL_INTERVAL = 0.3
DEFAULT_SELF_SUBMISSION_TTL = 60.0
DEFAULT_SHORT_TEXT_MAX_CHARS = 200

DEFAULT_SOURCE = "thinkdrop_electron"
DEFAULT_USER_ID = "default_user"
