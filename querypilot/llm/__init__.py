"""
LLM integration - client factory, response parsing and the generation agent
"""

from querypilot.llm.client import create_llm, log_llm_configuration
from querypilot.llm.generation import LLMGenerationAgent, describe_schema
from querypilot.llm.response_utils import extract_text_from_response

__all__ = [
    "create_llm",
    "log_llm_configuration",
    "LLMGenerationAgent",
    "describe_schema",
    "extract_text_from_response",
]
