from __future__ import annotations

from comanda.core.gateway.schemas import ChatRequest, Conversation, Message


def test_system_instruction_is_prepended_once() -> None:
    history = [Message(role="user", content="hola")]

    conversation = Conversation.with_system_instruction(history, "instructions")

    assert [message.role for message in conversation] == ["system", "user"]
    assert conversation.messages[0].content == "instructions"
    assert history == [Message(role="user", content="hola")]


def test_conversation_append_keeps_earlier_messages() -> None:
    conversation = Conversation([Message(role="user", content="hola")])
    snapshot = conversation.messages

    conversation.append("assistant", "__TOOL_CALL__ {}")
    conversation.append("system", "TOOL_RESULT: []")

    assert snapshot == (Message(role="user", content="hola"),)
    assert len(conversation) == 3
    assert conversation.payload()[-1] == {"role": "system", "content": "TOOL_RESULT: []"}


def test_chat_request_defaults_to_empty_history() -> None:
    assert ChatRequest.model_validate({}).messages == []
