"""
Settings for the EduRAG pipeline.

Values come from `config/config.yaml`; secrets (API keys, project ids)
come from the environment and are never stored in the YAML file.
"""
from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from edurag.generation.retry import RetryPolicy

DEFAULT_CONFIG_PATH = Path("config/config.yaml")


class PipelineConfig(BaseModel):
    """Tunables of the retrieval core. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    chunk_size: int = Field(default=500, gt=0)
    chunk_overlap: int = Field(default=50, ge=0)
    retrieval_top_k: int = Field(default=10, gt=0)
    reranker_top_n: int = Field(default=3, gt=0)
    min_similarity: float = 0.1
    stale_after_minutes: float = Field(default=30.0, gt=0)
    content_aware_fingerprint: bool = False
    max_occurrences_per_token: Optional[int] = Field(default=None, ge=0)


class GenerationSettings(BaseModel):
    provider: Literal["openai", "anthropic", "watsonx"] = "openai"
    model: Optional[str] = None   # None: the provider adapter's default model
    timeout_seconds: float = Field(default=30.0, gt=0)
    auth_timeout_seconds: float = Field(default=15.0, gt=0)
    max_tokens: int = 800
    temperature: float = 0.7
    retry: RetryPolicy = Field(default_factory=RetryPolicy)


class LoggingSettings(BaseModel):
    level: str = "INFO"
    file: Optional[str] = "logs/edurag.log"   # null disables the file sink


class RepositorySettings(BaseModel):
    documents_dir: str = "data/documents"


class Settings(BaseModel):
    project_name: str = "EduRAG"
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    repository: RepositorySettings = Field(default_factory=RepositorySettings)


def load_settings(path: str | Path = DEFAULT_CONFIG_PATH) -> Settings:
    """Read settings from YAML. A missing file yields the defaults."""
    path = Path(path)
    if not path.exists():
        logger.info(f"[Config] {path} not found, using defaults")
        return Settings()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    project = raw.pop("project", {}) or {}
    settings = Settings(project_name=project.get("name", "EduRAG"), **raw)
    logger.debug(f"[Config] Loaded settings from {path}")
    return settings
