"""
Harmony Codec

Renders a conversation into a single Harmony prompt string and parses a
raw completion back into structured messages, using ``openai_harmony``.
The adapter works with plain ``HarmonyMessage`` records; only this module
knows the library types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from openai_harmony import (
    Author,
    Conversation,
    DeveloperContent,
    HarmonyEncodingName,
    Message,
    Role,
    SystemContent,
    ToolDescription,
    load_harmony_encoding,
)
from openai_harmony import ReasoningEffort as HarmonyEffort

from codeagent.core.domain.errors import HarmonyDecodeError
from codeagent.core.domain.todo import ReasoningEffort

TERMINATORS = ("<|end|>", "<|call|>", "<|return|>")
END_TOKEN = "<|end|>"

_ROLES = {
    "system": Role.SYSTEM,
    "developer": Role.DEVELOPER,
    "user": Role.USER,
    "assistant": Role.ASSISTANT,
    "tool": Role.TOOL,
}

_EFFORTS = {
    ReasoningEffort.LOW: HarmonyEffort.LOW,
    ReasoningEffort.MEDIUM: HarmonyEffort.MEDIUM,
    ReasoningEffort.HIGH: HarmonyEffort.HIGH,
}


@dataclass(frozen=True)
class HarmonyMessage:
    """
    One transcript message.

    Attributes:
        role: system, developer, user, assistant or tool
        content: Message text
        channel: analysis, commentary or final
        recipient: Addressee, e.g. ``functions.bash`` for tool calls
        name: Author name, e.g. ``functions.bash`` for tool results
        content_type: Content type marker such as ``<|constrain|>json``
    """

    role: str
    content: str
    channel: str | None = None
    recipient: str | None = None
    name: str | None = None
    content_type: str | None = None


def ensure_terminated(completion: str) -> str:
    """Append ``<|end|>`` unless the completion already ends in a terminator."""
    if completion.rstrip().endswith(TERMINATORS):
        return completion
    return completion + END_TOKEN


class TranscriptCodec(Protocol):
    def render(
        self,
        instructions: str,
        tools: list[dict[str, Any]],
        reasoning_effort: ReasoningEffort | None,
        messages: list[HarmonyMessage],
    ) -> str: ...

    def parse_completion(self, completion: str) -> list[HarmonyMessage]: ...


class HarmonyCodec:
    """
    ``TranscriptCodec`` backed by the gpt-oss Harmony encoding.

    The encoding is loaded on first use; loading fetches the tokenizer
    vocabulary.
    """

    def __init__(self, encoding: Any = None):
        self._encoding = encoding

    @property
    def encoding(self) -> Any:
        if self._encoding is None:
            self._encoding = load_harmony_encoding(HarmonyEncodingName.HARMONY_GPT_OSS)
        return self._encoding

    def render(
        self,
        instructions: str,
        tools: list[dict[str, Any]],
        reasoning_effort: ReasoningEffort | None,
        messages: list[HarmonyMessage],
    ) -> str:
        """Render system, developer and conversation messages for completion."""
        system = SystemContent.new()
        if reasoning_effort is not None:
            system = system.with_reasoning_effort(_EFFORTS[reasoning_effort])

        developer = DeveloperContent.new().with_instructions(instructions)
        if tools:
            developer = developer.with_function_tools(
                [
                    ToolDescription.new(tool["name"], tool["description"], parameters=tool["parameters"])
                    for tool in tools
                ]
            )

        conversation = Conversation.from_messages(
            [
                Message.from_role_and_content(Role.SYSTEM, system),
                Message.from_role_and_content(Role.DEVELOPER, developer),
                *(self._to_library(message) for message in messages),
            ]
        )
        tokens = self.encoding.render_conversation_for_completion(conversation, Role.ASSISTANT)
        return self.encoding.decode_utf8(tokens)

    def parse_completion(self, completion: str) -> list[HarmonyMessage]:
        """
        Parse the assistant messages contained in a raw completion.

        Raises:
            HarmonyDecodeError: If the text is not a valid Harmony transcript
        """
        text = ensure_terminated(completion)
        try:
            tokens = self.encoding.encode(text, allowed_special="all")
            parsed = self.encoding.parse_messages_from_completion_tokens(tokens, Role.ASSISTANT)
        except Exception as e:
            raise HarmonyDecodeError(f"Failed to parse Harmony completion: {e}", provider="together") from e
        return [self._from_library(message) for message in parsed]

    @staticmethod
    def _to_library(message: HarmonyMessage) -> Any:
        role = _ROLES[message.role]
        if message.name:
            converted = Message.from_author_and_content(Author.new(role, message.name), message.content)
        else:
            converted = Message.from_role_and_content(role, message.content)
        if message.channel:
            converted = converted.with_channel(message.channel)
        if message.recipient:
            converted = converted.with_recipient(message.recipient)
        if message.content_type:
            converted = converted.with_content_type(message.content_type)
        return converted

    @staticmethod
    def _from_library(message: Any) -> HarmonyMessage:
        text = "".join(getattr(part, "text", "") or "" for part in message.content)
        role = message.author.role
        return HarmonyMessage(
            role=role.value if hasattr(role, "value") else str(role),
            content=text,
            channel=message.channel,
            recipient=message.recipient,
            name=message.author.name,
            content_type=message.content_type,
        )
