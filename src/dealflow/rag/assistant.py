"""Citation-grounded investor assistant.

One ask() call builds a ContextPack for the message, assembles the system
prompt (base prompt, citation rules, citation list, context text), replays
the thread history from the session store, and calls the LLM. LLM errors
propagate to the caller; the turn is stored only on success.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from dealflow.config import AssistantCfg
from dealflow.rag import llm_client
from dealflow.rag.context import ContextBuilder
from dealflow.rag.formatter import citation_system_prompt
from dealflow.rag.models import ContextPack
from dealflow.rag.sessions import SessionStore

logger = logging.getLogger(__name__)

BASE_SYSTEM_PROMPT = """You are an expert venture capital analyst assisting an angel investor with their deal pipeline.

FORMATTING RULES:
- Use **bold** for key terms
- Use dashes (-) for bullet points
- Keep responses scannable with short paragraphs
- Do not use markdown tables

When discussing a company or founder, cover what they do, market, strengths, risks and competitive landscape where the sources allow it. If uncertain, say so and suggest what to look into next."""

NO_SOURCES_NOTE = "(no sources found)"


@dataclass(frozen=True)
class AssistantReply:
    content: str
    pack: ContextPack


def build_system_prompt(pack: ContextPack) -> str:
    """Return the full system prompt for a turn answered from *pack*."""
    return (
        f"{BASE_SYSTEM_PROMPT}\n\n"
        f"{citation_system_prompt()}\n\n"
        f"SOURCES:\n{pack.citation_list or NO_SOURCES_NOTE}\n\n"
        f"CONTEXT:\n{pack.context_text or NO_SOURCES_NOTE}"
    )


class Assistant:
    def __init__(
        self,
        builder: ContextBuilder,
        sessions: SessionStore,
        config: AssistantCfg | None = None,
    ) -> None:
        self.builder = builder
        self.sessions = sessions
        self.config = config or AssistantCfg()

    def ask(
        self,
        user_id: str,
        thread_id: str,
        message: str,
        **entity: Any,
    ) -> AssistantReply:
        """Answer *message* in thread *thread_id*.

        Args:
            entity: Optional focus fields forwarded to ContextBuilder.build()
                (company_id, company_name, company_website,
                company_description, founder_id, founder_name,
                include_web_search).

        Raises:
            litellm.exceptions.APIError: On persistent LLM failure.
        """
        pack = self.builder.build(user_id, message, **entity)
        logger.info(
            "Answering with %d internal and %d web sources",
            len(pack.internal_sources),
            len(pack.external_sources),
        )

        messages = [{"role": "system", "content": build_system_prompt(pack)}]
        messages.extend(self.sessions.get(user_id, thread_id))
        messages.append({"role": "user", "content": message})

        content = llm_client.complete(
            self.config.model,
            messages,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )

        self.sessions.append(
            user_id,
            thread_id,
            {"role": "user", "content": message},
            {"role": "assistant", "content": content},
        )
        return AssistantReply(content=content, pack=pack)
