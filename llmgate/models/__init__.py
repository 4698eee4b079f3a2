from llmgate.models.git_settings import GitSettings
from llmgate.models.llm_config import LlmConfig

__all__ = [
    "GitSettings",
    "LlmConfig",
]
