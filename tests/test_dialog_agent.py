"""Tests for the dialog agent."""

import pytest

from cortex.agents.dialog import FALLBACK_REPLY, NO_CONTEXT, DialogAgent, clean_response
from cortex.core.errors import ContextOverflowError
from cortex.llm.base import GenerationResult


class ScriptedGenerator:
    """Returns queued results (or raises queued exceptions) in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []
        self.resets = 0

    async def generate(self, messages, max_tokens=300, tools=None):
        self.calls.append({"messages": [dict(m) for m in messages], "tools": tools})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def stream(self, messages, max_tokens=300):
        yield ""

    async def reset(self):
        self.resets += 1


@pytest.mark.asyncio
async def test_plain_reply_is_stored(manager, settings):
    generator = ScriptedGenerator(GenerationResult(content="Hello there, nice to meet you."))
    agent = DialogAgent(manager, generator, settings=settings)

    reply = await agent.respond("Hi!")

    assert reply == "Hello there, nice to meet you."
    [call] = generator.calls
    assert call["messages"][0]["role"] == "system"
    assert call["messages"][-1] == {"role": "user", "content": "Hi!"}
    assert [t["function"]["name"] for t in call["tools"]] == ["remember", "recall", "list_facts"]
    assert manager.recent_episodes[0].content == "User: Hi!\nAssistant: Hello there, nice to meet you."
    await manager.wait_for_extraction()


@pytest.mark.asyncio
async def test_known_facts_reach_the_prompt(manager, settings):
    await manager.store_conversation("My name is Alex", "Hi Alex")
    await manager.wait_for_extraction()

    generator = ScriptedGenerator(GenerationResult(content="Good to see you again, Alex."))
    agent = DialogAgent(manager, generator, settings=settings)
    await agent.respond("How are you today?")

    messages = generator.calls[0]["messages"]
    assert "- User name is Alex" in messages[0]["content"]
    assert NO_CONTEXT not in messages[0]["content"]
    # previous exchange is replayed before the new message
    assert messages[1] == {"role": "user", "content": "My name is Alex"}
    assert messages[2] == {"role": "assistant", "content": "Hi Alex"}
    await manager.wait_for_extraction()


@pytest.mark.asyncio
async def test_tool_call_round_trip(manager, settings):
    generator = ScriptedGenerator(
        GenerationResult(
            content="",
            tool_calls=[
                {"id": "call_1", "name": "remember", "input": {"content": "gate code 1234"}}
            ],
        ),
        GenerationResult(content="Got it, I'll keep that in mind."),
    )
    agent = DialogAgent(manager, generator, settings=settings)

    reply = await agent.respond("Remember my gate code is 1234")

    assert reply == "Got it, I'll keep that in mind."
    first, second = generator.calls
    assert first["tools"] is not None
    assert second["tools"] is None
    follow_up = second["messages"][-1]["content"]
    assert follow_up.startswith("Tool results:\n\nTool 1: SUCCESS")
    assert 'Remembered: \\"gate code 1234\\"' in follow_up

    contents = [m.content for m in manager.recent_episodes]
    assert "User explicitly asked to remember: gate code 1234" in contents
    await manager.wait_for_extraction()


@pytest.mark.asyncio
async def test_context_overflow_resets_and_retries(manager, settings):
    """Retry runs once, without dialogue history."""
    await manager.store_conversation("earlier question", "earlier answer")
    generator = ScriptedGenerator(
        ContextOverflowError("too many tokens"),
        GenerationResult(content="Let's start fresh then."),
    )
    agent = DialogAgent(manager, generator, settings=settings)

    reply = await agent.respond("Can you summarize?")

    assert reply == "Let's start fresh then."
    assert generator.resets == 1
    retry_messages = generator.calls[1]["messages"]
    assert [m["role"] for m in retry_messages] == ["system", "user"]
    await manager.wait_for_extraction()


@pytest.mark.asyncio
async def test_second_overflow_propagates(manager, settings):
    generator = ScriptedGenerator(ContextOverflowError("one"), ContextOverflowError("two"))
    agent = DialogAgent(manager, generator, settings=settings)

    with pytest.raises(ContextOverflowError):
        await agent.respond("Hello again")
    assert manager.recent_episodes == ()


@pytest.mark.asyncio
async def test_empty_reply_uses_fallback(manager, settings):
    generator = ScriptedGenerator(GenerationResult(content="<think>hmm</think> ok"))
    agent = DialogAgent(manager, generator, settings=settings)

    assert await agent.respond("...") == FALLBACK_REPLY
    await manager.wait_for_extraction()


class TestCleanResponse:
    def test_strips_think_blocks(self):
        assert clean_response("<think>plan</think>Sure thing!") == "Sure thing!"
        assert clean_response("Answer<think>unterminated") == "Answer"

    def test_strips_fences_and_tokens(self):
        assert clean_response("```json\nhello\n```") == "hello"
        assert clean_response("Hi<|im_end|></s>") == "Hi"

    def test_strips_tool_echo_lines(self):
        text = 'Remembered: "x"\nFound:\nOf course, noted.'
        assert clean_response(text) == "Of course, noted."

    def test_collapses_blank_lines(self):
        assert clean_response("a\n\n\n\nb") == "a\n\nb"
