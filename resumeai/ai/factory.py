from resumeai.ai.config import AIConfig, load_ai_config
from resumeai.ai.reasoner import LanguageReasoner, PromptedReasoner
from resumeai.ai.types import CompletionClient

from resumeai.ai.providers.openai_provider import OpenAIProvider


def get_completion_client(cfg: AIConfig | None = None) -> CompletionClient:
    cfg = cfg or load_ai_config()

    if cfg.provider == "openai":
        return OpenAIProvider(
            model=cfg.model,
            api_key=cfg.api_key,
            base_url=cfg.base_url,
            timeout_s=cfg.timeout_s,
        )

    raise ValueError(f"Unsupported AI_PROVIDER='{cfg.provider}'")


def get_reasoner() -> LanguageReasoner:
    return PromptedReasoner(get_completion_client())
