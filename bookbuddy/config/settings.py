"""Application settings loaded from environment variables via pydantic-settings.

Values come from two sources, in priority order:

  1. Environment variables (e.g. ``OPENAI_API_KEY=sk-...``), which always win.
  2. The project-root ``.env`` file, for local development.

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.  Defaults apply
when neither source defines a field.  Static tunables (chunk sizes, batch
sizes, thresholds) live in ``config/config.yaml`` instead; see
:mod:`bookbuddy.config.loader`.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """BookBuddy application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === LLM Providers ===
    # Empty string = "not configured"; provider selection in main.py skips it.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoints (TogetherAI, Gemini, etc.)
    openai_text_model: str = ""
    openai_embedding_model: str = ""
    anthropic_api_key: str = ""
    ollama_base_url: str = "http://localhost:11434"

    # Comma-separated fallback chain, e.g. "gemini-2.5-flash,gemini-2.5-flash-lite".
    # Empty means "use config.yaml / the provider default".
    generation_models: str = ""

    # === Storage ===
    database_path: str = "data/bookbuddy.db"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "bookbuddy_chunks"
    storage_type: str = "local"
    local_storage_path: str = "data/uploads"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return LLM provider names in selection priority order."""
        providers: list[str] = []
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.openai_api_key:
            providers.append("openai")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers

    def get_generation_models(self) -> list[str]:
        """Parse :attr:`generation_models` into an ordered list."""
        return [m.strip() for m in self.generation_models.split(",") if m.strip()]
