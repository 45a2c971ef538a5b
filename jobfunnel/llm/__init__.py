"""
Language-model plumbing shared by the scoring, extraction, query and
rerank stages: provider selection, forgiving JSON parsing, response
schemas and prompts.
"""

from .client import JsonLLMClient  # noqa: F401
from .providers import GeminiProvider, LLMProvider, OpenAIProvider, get_default_provider  # noqa: F401
