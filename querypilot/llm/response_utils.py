"""
Chat model reply parsing.

Providers return either a plain string or a list of content blocks; reasoning
models interleave ``reasoning`` blocks that must never reach SQL extraction.
"""

from typing import Any, Optional

from loguru import logger


def _block_text(block: Any) -> Optional[str]:
    if isinstance(block, str):
        return block
    if isinstance(block, dict) and block.get("type") != "reasoning":
        return block.get("text")
    return None


def extract_text_from_response(response: Any) -> str:
    """
    Visible text of a chat model reply (AIMessage, block list or string).

    Example:
        >>> extract_text_from_response(AIMessage(content=[
        ...     {"type": "reasoning", "text": "the user wants..."},
        ...     {"type": "text", "text": "```sql\\nSELECT 1\\n```"},
        ... ]))
        '```sql\\nSELECT 1\\n```'
    """
    content = getattr(response, "content", response)
    if not content:
        return ""
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return str(content)

    text = "".join(part for part in map(_block_text, content) if part)
    if not text:
        logger.warning(f"Model reply had no text blocks: {str(content)[:200]}")
    return text
