"""Configuration settings for the application."""

from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical
    RUN_TIMEOUT_SECONDS: float | None = 600.0

    # Model configuration
    MODEL_BACKEND: str = "ollama"  # Options: ollama, openai, anthropic
    OLLAMA_ENDPOINT: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "llama3.2:3b"
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"
    MODEL_TEMPERATURE: float = 0.1
    MODEL_TIMEOUT_SECONDS: float = 300.0
    MODEL_MAX_TOKENS: int = 4096
    NATIVE_TOOL_SCHEMAS: bool = False  # Also advertise tools through the backend's tool channel
    ENSURE_MODEL_ON_STARTUP: bool = True

    # Tool catalog configuration
    MCP_URL: str | None = None  # SSE endpoint; stdio transport is used when unset
    MCP_TOKEN: str | None = None
    MCP_COMMAND: str = "github-mcp-server"
    MCP_ARGUMENTS: str = "stdio"
    ENABLE_LOCAL_TOOLS: bool = True
    TOOL_NAME_CASE_INSENSITIVE: bool = False
    TOOL_RESULT_MAX_CHARS: int = 12000
    PULL_REQUEST_LIST_TOOL: str = "list_pull_requests"

    # Planner loop limits
    MAX_ITERATIONS: int = 40
    MAX_MALFORMED_TURNS: int = 6
    PROTOCOL_REMINDER_THRESHOLDS: List[int] = [2, 4]
    EVIDENCE_ITEM_MAX_BYTES: int = 16 * 1024
    EVIDENCE_TOTAL_MAX_BYTES: int = 256 * 1024
    AUTHORITATIVE_PATTERNS: List[str] = [
        "global.json",
        "*.csproj",
        "*.fsproj",
        "*.vbproj",
        "Directory.Build.props",
        "Directory.Build.targets",
    ]
    PHASE_MAX_ATTEMPTS: int = 3
    ARRAY_TAG: str = "json"
    DIAGNOSTIC_SNIPPET_CHARS: int = 2000

    # Compliance checks
    TICKET_PREFIX: str = "TB"

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
