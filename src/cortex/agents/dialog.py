"""Dialog agent - memory-grounded reply generation."""

import re

from cortex.core.config import Settings, get_settings
from cortex.core.errors import ContextOverflowError
from cortex.core.logging import get_logger
from cortex.core.types import MessageDict
from cortex.llm.base import TextGenerator
from cortex.memory.manager import MemoryManager
from cortex.tools.base import ToolCall
from cortex.tools.memory_tools import MemoryToolExecutor

logger = get_logger("agents.dialog")

NO_CONTEXT = "(No memories yet - this is a new conversation!)"

FALLBACK_REPLY = "I'm here to help! What would you like to talk about?"

SYSTEM_TEMPLATE = """You are Cortex, a thoughtful AI companion who truly knows the user. \
Everything runs privately - you're their personal AI that remembers and grows with them.

{context}

CORE PERSONALITY:
- Warm, genuine, and attentive - like a trusted friend who actually listens
- Reference what you know naturally: "Since you work at [company]..." or "I remember you mentioned..."
- If you know their name, use it occasionally (but not every message)
- Be concise but meaningful (2-3 sentences usually)

MEMORY BEHAVIOR:
- You automatically remember important things - never say "I'll remember that" or mention memory
- When they share something new about themselves, acknowledge it naturally
- Connect new information to what you already know when relevant

WHAT TO AVOID:
- Generic responses that could apply to anyone
- Mentioning tools, functions, JSON, or technical details
- Making assumptions about things you don't know"""

# Model output artifacts stripped before a reply is shown or stored
_ARTIFACTS = [
    re.compile(r"<think>.*?</think>", re.DOTALL),
    re.compile(r"<think>.*$", re.DOTALL),
    re.compile(r"```[a-z]*\n?", re.IGNORECASE),
    re.compile(r"<\|[^|>]*\|>"),
    re.compile(r"</s>"),
    re.compile(r"^(?:Remembered:|Found:).*\n?", re.MULTILINE),
]


def clean_response(text: str) -> str:
    for pattern in _ARTIFACTS:
        text = pattern.sub("", text)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


class DialogAgent:
    """Builds memory context, generates a reply, and records the exchange."""

    def __init__(
        self,
        manager: MemoryManager,
        generator: TextGenerator,
        settings: Settings | None = None,
    ):
        self.manager = manager
        self.generator = generator
        self.settings = settings or get_settings()
        self._tools = MemoryToolExecutor(manager)

    async def respond(self, text: str) -> str:
        """Reply to one user message.

        Extraction of facts from the exchange is queued, not awaited. On a
        context overflow the generator is reset and the turn retried once
        without dialogue history.
        """
        try:
            raw = await self._generate_reply(text, include_history=True)
        except ContextOverflowError as e:
            logger.warning(f"Context overflow, resetting generator and retrying: {e}")
            await self.generator.reset()
            raw = await self._generate_reply(text, include_history=False)

        reply = clean_response(raw)
        if len(reply) < 3:
            logger.warning("Empty reply from generator, using fallback")
            reply = FALLBACK_REPLY

        await self.manager.store_conversation(text, reply)
        return reply

    def _build_messages(self, text: str, context: str, include_history: bool) -> list[MessageDict]:
        system_prompt = SYSTEM_TEMPLATE.format(context=context if context.strip() else NO_CONTEXT)
        messages: list[MessageDict] = [{"role": "system", "content": system_prompt}]
        if include_history:
            max_messages = self.settings.max_history_turns * 2
            history = self.manager.get_history()[-max_messages:]
            messages.extend(m.to_llm_format() for m in history)
        messages.append({"role": "user", "content": text})
        return messages

    async def _generate_reply(self, text: str, include_history: bool) -> str:
        context = await self.manager.build_context(text)
        messages = self._build_messages(text, context, include_history)
        max_tokens = self.settings.max_response_tokens
        logger.debug(f"DialogAgent sending {len(messages)} messages, context: {len(context)} chars")

        response = await self.generator.generate(
            messages, max_tokens=max_tokens, tools=self._tools.to_openai_tools()
        )
        if not response.tool_calls:
            return response.content

        calls = [
            ToolCall(tool_name=tc["name"], arguments=tc.get("input") or {}, call_id=tc.get("id"))
            for tc in response.tool_calls
        ]
        logger.info(f"Executing {len(calls)} tool call(s): {[c.tool_name for c in calls]}")
        results = await self._tools.execute_all(calls)

        messages.append({"role": "assistant", "content": response.content or ""})
        messages.append(
            {
                "role": "user",
                "content": (
                    f"Tool results:\n\n{self._tools.format_results_for_llm(results)}\n\n"
                    "Please provide a natural response based on these results."
                ),
            }
        )
        final = await self.generator.generate(messages, max_tokens=max_tokens, tools=None)
        return final.content or response.content
