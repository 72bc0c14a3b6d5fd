"""support_agent.providers.llm package"""

from .base import LLMProvider
from .openai_llm import OpenAILLM
from .ollama_local import OllamaLocal

__all__ = ["LLMProvider", "OpenAILLM", "OllamaLocal"]
