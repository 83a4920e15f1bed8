import os
import re
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_INSTRUCTIONS = """You are an expert GitHub pull request reviewer. Analyze the following changes and provide:
1. A summary of what changed
2. Potential bugs or regressions
3. Code quality concerns
4. Security considerations
5. Actionable suggestions

Reference file names and line numbers where possible."""

DEFAULT_COMMENT_FOOTER = "_Generated automatically by GitHub PR Reviewer_."

DEFAULT_CONFIG: dict = {
    "model": "anthropic",
    "max_chars_per_file": 20000,
    "review_instructions": None,  # None = use DEFAULT_INSTRUCTIONS
    "mcp_host": "0.0.0.0",
    "mcp_port": 3100,
    "mcp_cors_origins": [],  # empty = allow any origin
    "mcp_enable_dns_rebinding": False,
    "mcp_allowed_hosts": [],
    "mcp_allowed_origins": [],
    "mcp_json_response": False,
    "mcp_server_url": "http://localhost:3100/mcp",
    "webhook_host": "0.0.0.0",
    "webhook_port": 4100,
    "webhook_cors_origins": [],
    "webhook_body_limit": 1024 * 1024,
    "webhook_secret": None,
    "allowed_events": ["pull_request"],
    "allowed_actions": ["opened", "synchronize", "reopened", "ready_for_review"],
    "comment_heading": None,  # None = "Automated PR Review for #<number>"
    "comment_footer": None,  # None = DEFAULT_COMMENT_FOOTER
}

_LIST_KEYS = {
    "mcp_cors_origins",
    "mcp_allowed_hosts",
    "mcp_allowed_origins",
    "webhook_cors_origins",
    "allowed_events",
    "allowed_actions",
}

# config key -> environment variables, first one set wins
ENV_VARS: dict = {
    "model": ("PRRELAY_MODEL",),
    "max_chars_per_file": ("PRRELAY_MAX_CHARS_PER_FILE",),
    "review_instructions": ("PRRELAY_REVIEW_INSTRUCTIONS",),
    "mcp_host": ("MCP_HOST",),
    "mcp_port": ("MCP_PORT",),
    "mcp_cors_origins": ("MCP_CORS_ORIGINS",),
    "mcp_enable_dns_rebinding": ("MCP_ENABLE_DNS_REBINDING",),
    "mcp_allowed_hosts": ("MCP_ALLOWED_HOSTS",),
    "mcp_allowed_origins": ("MCP_ALLOWED_ORIGINS",),
    "mcp_json_response": ("MCP_JSON_RESPONSE",),
    "mcp_server_url": ("MCP_SERVER_URL",),
    "webhook_host": ("WEBHOOK_HOST",),
    "webhook_port": ("WEBHOOK_PORT", "PORT"),
    "webhook_cors_origins": ("WEBHOOK_CORS_ORIGINS",),
    "webhook_body_limit": ("WEBHOOK_BODY_LIMIT",),
    "webhook_secret": ("GITHUB_WEBHOOK_SECRET",),
    "allowed_events": ("GITHUB_PR_EVENTS",),
    "allowed_actions": ("GITHUB_PR_ACTIONS",),
    "comment_heading": ("GITHUB_COMMENT_HEADING",),
    "comment_footer": ("GITHUB_COMMENT_FOOTER",),
}

_INT_KEYS = {"max_chars_per_file", "mcp_port", "webhook_port"}
_BOOL_KEYS = {"mcp_enable_dns_rebinding", "mcp_json_response"}
_TRUE_VALUES = {"1", "true", "yes", "on"}
_SIZE_RE = re.compile(r"^\s*(\d+)\s*(b|kb|mb|gb)?\s*$", re.IGNORECASE)
_SIZE_UNITS = {"b": 1, "kb": 1024, "mb": 1024**2, "gb": 1024**3}


def parse_list(value) -> list[str]:
    """Split a comma separated string (or clean a list), dropping blanks."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(v).strip() for v in value if str(v).strip()]


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def parse_size(value) -> int:
    """Parse a body size such as ``1mb``, ``512kb`` or ``2048`` into bytes."""
    if isinstance(value, int):
        return value
    match = _SIZE_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid size value: {value!r}. Use bytes or a kb/mb/gb suffix.")
    return int(match.group(1)) * _SIZE_UNITS[(match.group(2) or "b").lower()]


def _coerce(key: str, value):
    if key in _LIST_KEYS:
        return parse_list(value)
    if key in _BOOL_KEYS:
        return parse_bool(value)
    if key in _INT_KEYS:
        return int(value)
    if key == "webhook_body_limit":
        return parse_size(value)
    return value


def load_config(config_path: str = ".prrelay.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prrelay.yml in the current directory
      3. Environment variables (see ENV_VARS)
      4. CLI argument overrides

    An empty list from any layer keeps the value of the layer below it,
    so ``GITHUB_PR_EVENTS=""`` still means "pull_request only".
    """
    config = {key: (list(value) if isinstance(value, list) else value) for key, value in DEFAULT_CONFIG.items()}

    def _apply(key, value):
        if value is None:
            return
        value = _coerce(key, value)
        if key in _LIST_KEYS and not value and DEFAULT_CONFIG[key]:
            return
        config[key] = value

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        for key, value in file_config.items():
            _apply(key, value)

    for key, names in ENV_VARS.items():
        for name in names:
            raw = os.environ.get(name)
            if raw is not None and raw.strip() != "":
                _apply(key, raw)
                break

    if cli_overrides:
        for key, value in cli_overrides.items():
            _apply(key, value)

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

    return config


def provider_api_key(config: dict) -> Optional[str]:
    """Return the API key for the configured model provider."""
    model = config.get("model")
    if model == "anthropic":
        return config.get("anthropic_api_key")
    if model == "openai":
        return config.get("openai_api_key")
    raise ValueError(f"Unknown model provider: {model!r}. Choose 'anthropic' or 'openai'.")
