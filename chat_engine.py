"""Chat assistant for the portfolio site: a thin client over the model provider."""

import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from config import (
    OPENROUTER_BASE_URL,
    OPENROUTER_API_KEY,
    DEFAULT_LLM_MODEL,
    LLM_TEMPERATURE,
    LLM_MAX_TOKENS,
    CHAT_HISTORY_LIMIT,
    SITE_OWNER,
    SITE_TAGLINE,
)

logger = logging.getLogger(__name__)


class ChatError(Exception):
    """The provider could not produce an answer."""


def build_context(projects: Iterable[Any] = (), skills: Iterable[Any] = ()) -> str:
    """Compact plain-text summary of featured projects and skills."""
    context_parts = []

    proj_lines = []
    for p in projects:
        techs = ", ".join(p.technologies) if p.technologies else ""
        line = f"  - {p.title}: {p.summary or p.description}"
        if techs:
            line += f" [Technologies: {techs}]"
        proj_lines.append(line)
    if proj_lines:
        context_parts.append("Projects:\n" + "\n".join(proj_lines))

    by_category: Dict[str, List[str]] = {}
    for s in skills:
        by_category.setdefault(s.category, []).append(s.name)
    if by_category:
        context_parts.append(
            "Skills:\n" + "\n".join(f"  - {cat}: {', '.join(names)}" for cat, names in by_category.items())
        )

    return "\n\n".join(context_parts)


def build_messages(messages: List[Dict[str, str]], context: str = "") -> List[Dict[str, str]]:
    system_prompt = (
        "You are an AI assistant for a personal portfolio website. Answer questions about the "
        "portfolio owner's projects, skills, and background based on the conversation. "
        "Be helpful, concise, and professional. If you don't know something specific about "
        "the portfolio owner, say so politely.\n"
        f"The portfolio belongs to {SITE_OWNER}, who works on {SITE_TAGLINE}."
    )
    if context:
        system_prompt += f"\n\n=== PORTFOLIO INFO ===\n{context}\n=== END INFO ==="

    history = [
        {"role": m["role"], "content": m["content"]}
        for m in messages
        if m.get("content")
    ][-CHAT_HISTORY_LIMIT:]
    return [{"role": "system", "content": system_prompt}] + history


async def _call_llm(client: httpx.AsyncClient, model: str, api_key: str, messages: List[Dict[str, str]]) -> str:
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
        "X-Title": "Portfolio Assistant",
    }
    payload = {
        "model": model,
        "messages": messages,
        "temperature": LLM_TEMPERATURE,
        "max_tokens": LLM_MAX_TOKENS,
    }
    resp = await client.post(f"{OPENROUTER_BASE_URL}/chat/completions", headers=headers, json=payload)
    resp.raise_for_status()
    return resp.json()["choices"][0]["message"]["content"]


async def chat(
    messages: List[Dict[str, str]],
    context: str = "",
    api_key: Optional[str] = None,
    model: Optional[str] = None,
) -> str:
    """Send the conversation to the provider and return the assistant reply."""
    api_key = api_key or OPENROUTER_API_KEY
    if not api_key:
        raise ChatError("Chat API key is not configured")

    formatted = build_messages(messages, context)
    try:
        async with httpx.AsyncClient(timeout=60.0) as client:
            answer = await _call_llm(client, model or DEFAULT_LLM_MODEL, api_key, formatted)
    except (httpx.HTTPError, KeyError, IndexError, ValueError) as e:
        logger.error("Chat LLM call failed: %s", e)
        raise ChatError("Failed to generate response") from e

    logger.info("Chat response: %d chars for %d messages", len(answer), len(formatted) - 1)
    return answer.strip()
