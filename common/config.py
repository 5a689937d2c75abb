from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "config.yaml"


class AppConfig(BaseModel):
    max_categories: int = Field(default=250, gt=0)
    max_files_to_process: int = Field(default=100, gt=0)
    checkpoint_every: int = Field(default=10, gt=0)
    cache_key_template: str = "kb-analysis-cache/{kb_id}.jsonl"
    show_progress: bool = True


class ContentStoreConfig(BaseModel):
    base_url: str = "https://api.botpress.cloud"
    timeout: int = 30
    max_attempts: int = Field(default=1, ge=1)


class SummarizationConfig(BaseModel):
    chunk_size: int = 12000
    chunk_overlap: int = 200
    max_rounds: int = 6


class LabelingConfig(BaseModel):
    write_mode: str = Field(default="candidates", pattern="^(candidates|selected)$")


class LLMConfig(BaseModel):
    provider: str = "ollama"
    model_name: str = "mistral"
    temperature: float = 0.2
    base_url: str = "http://localhost:11434"


class GlobalYAMLConfig(BaseModel):
    app: AppConfig = AppConfig()
    content_store: ContentStoreConfig = ContentStoreConfig()
    summarization: SummarizationConfig = SummarizationConfig()
    labeling: LabelingConfig = LabelingConfig()
    llm_summary: LLMConfig = LLMConfig()
    llm_extraction: LLMConfig = LLMConfig(base_url="http://localhost:11434/v1")


def load_yaml_config(path: Path = DEFAULT_CONFIG_PATH) -> GlobalYAMLConfig:
    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}
    return GlobalYAMLConfig(**raw)


class Secrets(BaseSettings):
    bot_id: str = Field(..., validation_alias="BOT_ID")
    token: str = Field(..., validation_alias="TOKEN")
    kb_id: str = Field(..., validation_alias="KB_ID")

    class Config:
        env_file = ".env"
        extra = "ignore"


def load_secrets() -> Secrets:
    """
    Read BOT_ID / TOKEN / KB_ID from the environment (or .env).
    Kept out of import time so tests never need real credentials.
    """
    return Secrets()


yaml_config = load_yaml_config()
