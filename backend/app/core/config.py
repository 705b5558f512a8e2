from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices
from functools import lru_cache
from pathlib import Path
from typing import Dict, List


def find_env_file():
    """Find .env.local file in project (for local development only)"""
    possible_paths = [
        Path(__file__).parent.parent.parent / '.env.local',  # backend/.env.local
        Path(__file__).parent.parent.parent.parent / 'infra' / 'env' / '.env.local',
        Path.cwd() / '.env.local',
        Path.cwd() / 'infra' / 'env' / '.env.local',
    ]
    for p in possible_paths:
        if p.exists():
            return str(p)
    return None  # No env file found, will use environment variables


class Settings(BaseSettings):
    env: str = 'development'
    api_v1_prefix: str = '/api/v1'
    project_name: str = 'Session Diagrams'
    log_level: str = 'INFO'

    # Database - SQLite file for local runs, Postgres in production
    # Production: Set DATABASE_URL environment variable
    database_url: str = 'sqlite:///./data/diagrams.db'
    db_pool_size: int = 10          # default pool size
    db_max_overflow: int = 20       # extra connections allowed temporarily
    db_pool_timeout: int = 30       # seconds to wait before giving up
    db_pool_recycle: int = 120      # recycle to avoid stale connections
    db_auto_create: bool = True     # create tables on startup (dev / sqlite)

    # AI API Keys - Set via environment variable in production
    gemini_api_key: str = ''
    groq_api_key: str = ''

    # AI Model settings
    # Backward-compatible aliases:
    # - LLM_GROQ_CHAT_MODEL (preferred)
    # - GROQ_MODEL (legacy)
    llm_groq_chat_model: str = Field(
        default='meta-llama/llama-4-scout-17b-16e-instruct',
        validation_alias=AliasChoices('LLM_GROQ_CHAT_MODEL', 'GROQ_MODEL'),
    )
    gemini_model: str = 'gemini-1.5-flash'
    ai_temperature: float = 0.1
    ai_max_tokens: int = 4000
    transcript_max_length: int = 15000  # characters sent to the LLM

    # Transcript source (session recording product)
    transcript_source_base_url: str = 'https://app.wave.co'
    transcript_source_auth_token: str = ''
    transcript_source_timeout_seconds: int = 60
    transcript_sessions_cache_path: str = './data/sessions-cache.json'
    min_transcript_length: int = 100

    # Diagram rendering (mermaid-cli)
    mmdc_bin: str = 'mmdc'
    puppeteer_config_path: str = ''
    exports_dir: str = './data/exports'
    render_timeout_seconds: int = 60
    validate_timeout_seconds: int = 30

    # Queue worker
    queue_worker_enabled: bool = True
    queue_poll_interval_seconds: float = 3.0
    queue_recent_limit: int = 10
    queue_prune_after_hours: int = 24

    # Pipeline
    # Case-insensitive owner aliases applied to extracted action items
    owner_aliases: Dict[str, str] = Field(
        default_factory=lambda: {'steven': 'Stephen', 'steve': 'Stephen'},
    )
    # Call types that get a diagram version
    diagram_call_types: List[str] = Field(default_factory=lambda: ['technical'])

    # CORS - comma separated origins or "*" for all
    cors_origins: str = '*'

    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding='utf-8',
        extra='ignore',
        # Environment variables take priority over .env file
        env_priority='environment'
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if self.database_url and self.database_url.startswith('postgres://'):
            self.database_url = self.database_url.replace('postgres://', 'postgresql://', 1)

    @property
    def groq_model(self) -> str:
        """
        Backward-compat accessor.
        Prefer using `llm_groq_chat_model` in new code.
        """
        return self.llm_groq_chat_model

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith('sqlite')

    @property
    def cors_origin_list(self) -> List[str]:
        raw = (self.cors_origins or '').strip()
        if not raw or raw == '*':
            return ['*']
        return [origin.strip() for origin in raw.split(',') if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
