"""
Prompt Chains

A chain formats prompt templates into messages, sends them to the chat
model and returns the text output. The agent builds two: a context-grounded
chain that carries retrieved knowledge, and a default chain without it.
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from seahorse.services.llm import ChatMessage, ChatModel, TokenCallback

logger = logging.getLogger(__name__)

NO_CONTEXT = "no extra knowledge"

SYSTEM_PROMPT_TEMPLATE = """you are a supportive, caring friend who loves to chat. keep your tone casual, warm and encouraging.

today is {today}. use it for anything date-related.

guidelines:
- keep it friendly and casual
- stay positive and supportive
- keep replies short (under 100 words)
- be honest and never make things up
- use at most 1-2 emojis, and only when they fit

when you don't know something, use this context to help: {context}
"""

DEFAULT_SYSTEM_PROMPT_TEMPLATE = """hey! you're a friendly ai buddy here to chat and help out. today is {today}.

guidelines:
- keep it friendly and casual
- stay positive and supportive
- use simple words and short sentences
- keep replies short (under 100 words)
- be honest and never make things up
- an emoji now and then is fine 😊
"""

HUMAN_PROMPT_TEMPLATE = "{question}"


def today_string(today: Optional[date] = None) -> str:
    """Render a date like 'Sat Oct 17 2026'."""
    return (today or date.today()).strftime("%a %b %d %Y")


class PromptChain:
    """
    System + human prompt templates piped into a chat model.

    Input mappers compute template variables from the raw inputs (for
    example today's date) before formatting.
    """

    def __init__(
        self,
        name: str,
        model: ChatModel,
        system_template: str,
        human_template: str = HUMAN_PROMPT_TEMPLATE,
        input_mappers: Optional[Dict[str, Callable[[Dict[str, Any]], Any]]] = None,
    ) -> None:
        self.name = name
        self.model = model
        self.system_template = system_template
        self.human_template = human_template
        self.input_mappers = input_mappers or {}

    def format_messages(self, inputs: Dict[str, Any]) -> List[ChatMessage]:
        values = dict(inputs)
        for key, mapper in self.input_mappers.items():
            values[key] = mapper(inputs)

        return [
            ChatMessage(role="system", content=self.system_template.format(**values)),
            ChatMessage(role="user", content=self.human_template.format(**values)),
        ]

    async def invoke(self, inputs: Dict[str, Any], on_token: Optional[TokenCallback] = None) -> str:
        messages = self.format_messages(inputs)
        logger.debug(f"Invoking {self.name} chain with {len(messages)} messages")
        return await self.model.generate(messages, on_token=on_token)


def build_rag_chain(model: ChatModel) -> PromptChain:
    """Chain whose system prompt embeds the retrieved context."""
    return PromptChain(
        name="rag",
        model=model,
        system_template=SYSTEM_PROMPT_TEMPLATE,
        input_mappers={
            "context": lambda inputs: inputs.get("context") or NO_CONTEXT,
            "today": lambda inputs: inputs.get("today") or today_string(),
        },
    )


def build_default_chain(model: ChatModel) -> PromptChain:
    """Chain with a simpler persona and no context slot."""
    return PromptChain(
        name="default",
        model=model,
        system_template=DEFAULT_SYSTEM_PROMPT_TEMPLATE,
        input_mappers={
            "today": lambda inputs: inputs.get("today") or today_string(),
        },
    )
