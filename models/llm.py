from __future__ import annotations

from langchain_ollama import OllamaLLM

from common.config import yaml_config
from common.logger import get_logger

log = get_logger(__name__)


def load_local_llm(config_section="llm_summary"):
    """
    Load a text-generation LLM based on config section (llm_summary).
    """
    cfg = getattr(yaml_config, config_section)

    if cfg.provider == "ollama":
        log.info("Using Ollama model '%s' for %s", cfg.model_name, config_section)
        return OllamaLLM(
            model=cfg.model_name, temperature=cfg.temperature, base_url=cfg.base_url
        )
    else:
        raise ValueError(f"Unsupported provider: {cfg.provider}")


def load_structured_client(config_section="llm_extraction"):
    """
    instructor-patched OpenAI client pointed at an OpenAI-compatible endpoint
    (Ollama's /v1 by default). Used for typed extraction and labeling.
    """
    cfg = getattr(yaml_config, config_section)

    if cfg.provider != "ollama":
        raise ValueError(f"Unsupported provider: {cfg.provider}")

    # lazy imports
    import instructor
    from openai import OpenAI

    return instructor.from_openai(
        OpenAI(base_url=cfg.base_url, api_key="ollama"),
        mode=instructor.Mode.JSON,
    )
