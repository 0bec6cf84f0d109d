import json
import unittest

from langchain_core.language_models.fake_chat_models import FakeMessagesListChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from genterm.llm_client import LLMClient, build_messages, format_context_message
from genterm.session_manager import SessionMessage


class TestMessageLayout(unittest.TestCase):
    def test_context_message_numbers_each_item(self):
        text = format_context_message(["alpha", "beta"])
        self.assertEqual(text, "Context information:\n\n[1] alpha\n\n[2] beta\n\n")

    def test_layout_is_system_context_history_then_user(self):
        history = [SessionMessage("user", "earlier q"), SessionMessage("assistant", "earlier a")]
        messages = build_messages(history, "new q", ["ctx"], system_prompt="be brief")

        self.assertIsInstance(messages[0], SystemMessage)
        self.assertEqual(messages[0].content, "be brief")
        self.assertIsInstance(messages[1], HumanMessage)
        self.assertTrue(messages[1].content.startswith("Context information:"))
        self.assertIsInstance(messages[2], HumanMessage)
        self.assertIsInstance(messages[3], AIMessage)
        self.assertEqual(messages[-1].content, "new q")

    def test_empty_context_adds_no_context_message(self):
        messages = build_messages([], "q", [], system_prompt="sys")
        self.assertEqual([type(m) for m in messages], [SystemMessage, HumanMessage])

    def test_multimodal_content_is_passed_through(self):
        content = [
            {"type": "text", "text": "what is this image"},
            {"type": "image_url", "image_url": {"url": "data:image/jpeg;base64,QUJD"}},
        ]
        messages = build_messages([], content, [], system_prompt="sys")
        self.assertEqual(messages[-1].content, content)


class TestLLMClient(unittest.IsolatedAsyncioTestCase):
    async def test_generate_with_history_returns_model_text(self):
        model = FakeMessagesListChatModel(responses=[AIMessage(content="four")])
        client = LLMClient(chat_model=model, system_prompt="sys")
        answer = await client.generate_with_history([], "what is 2+2", [])
        self.assertEqual(answer, "four")

    async def test_structured_model_content_is_serialized(self):
        parts = [{"type": "text", "text": "a cat"}]
        model = FakeMessagesListChatModel(responses=[AIMessage(content=parts)])
        client = LLMClient(chat_model=model, system_prompt="sys")
        answer = await client.generate_multimodal_with_history([], [{"type": "text", "text": "image?"}], [])
        self.assertEqual(json.loads(answer), parts)


if __name__ == "__main__":
    unittest.main()
