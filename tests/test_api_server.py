import unittest

from fastapi.testclient import TestClient

from genterm import api_server
from genterm.session_manager import SessionManager


class _FakeLLM:
    def __init__(self, answer: str = "model answer", error: Exception | None = None):
        self.answer = answer
        self.error = error
        self.calls = []

    async def generate_with_history(self, history, query, context):
        self.calls.append(("text", [m.content for m in history], query, list(context)))
        if self.error is not None:
            raise self.error
        return self.answer

    async def generate_multimodal_with_history(self, history, message_content, context):
        self.calls.append(("image", [m.content for m in history], message_content, list(context)))
        if self.error is not None:
            raise self.error
        return self.answer


class TestApiServer(unittest.TestCase):
    def setUp(self):
        self.sessions = SessionManager()
        self.llm = _FakeLLM()
        api_server._state["sessions"] = self.sessions
        api_server._state["llm"] = self.llm
        self.client = TestClient(api_server.app)
        self.client.__enter__()

    def tearDown(self):
        self.client.__exit__(None, None, None)
        api_server._state.clear()

    def _create_session(self) -> str:
        resp = self.client.post("/api/session", json={"action": "create"})
        self.assertEqual(resp.status_code, 200)
        return resp.json()["id"]

    def test_create_and_get_session(self):
        session_id = self._create_session()
        resp = self.client.post("/api/session", json={"action": "get", "id": session_id})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"id": session_id, "messages": []})

    def test_get_unknown_session_is_404(self):
        resp = self.client.post("/api/session", json={"action": "get", "id": "missing"})
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json(), {"error": "Session not found"})

    def test_unknown_action_is_400(self):
        resp = self.client.post("/api/session", json={"action": "delete"})
        self.assertEqual(resp.status_code, 400)

    def test_malformed_body_is_400(self):
        resp = self.client.post("/api/chat", json={"query": "no session id"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"detail": "Invalid request"})

    def test_chat_requires_known_session(self):
        resp = self.client.post("/api/chat", json={"sessionId": "nope", "query": "hi", "context": []})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"], "Invalid session")

    def test_text_chat_records_turns_and_passes_history(self):
        session_id = self._create_session()
        first = self.client.post(
            "/api/chat",
            json={"sessionId": session_id, "query": "what does the file say", "context": ["[File: notes.txt]\nhello"]},
        )
        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.json(), {"sessionId": session_id, "response": "model answer"})

        self.client.post("/api/chat", json={"sessionId": session_id, "query": "and then?", "context": []})

        self.assertEqual(self.llm.calls[0], ("text", [], "what does the file say", ["[File: notes.txt]\nhello"]))
        self.assertEqual(self.llm.calls[1][1], ["what does the file say", "model answer"])
        roles = [m.role for m in self.sessions.get_messages(session_id)]
        self.assertEqual(roles, ["user", "assistant", "user", "assistant"])

    def test_image_chat_uses_multimodal_path(self):
        session_id = self._create_session()
        content = [
            {"type": "text", "text": "describe this image"},
            {"type": "image_url", "image_url": {"url": "data:image/jpeg;base64,QUJD"}},
        ]
        resp = self.client.post(
            "/api/chat",
            json={"sessionId": session_id, "query": "describe this image", "context": [], "messageContent": content},
        )
        self.assertEqual(resp.status_code, 200)
        kind, _history, sent_content, _context = self.llm.calls[0]
        self.assertEqual(kind, "image")
        self.assertEqual(sent_content, content)
        self.assertEqual(self.sessions.get_messages(session_id)[0].content, "describe this image [with image]")

    def test_llm_failure_is_500_with_detail(self):
        self.llm.error = RuntimeError("rate limited")
        session_id = self._create_session()
        resp = self.client.post("/api/chat", json={"sessionId": session_id, "query": "hi", "context": []})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["detail"], "Error generating response: rate limited")

    def test_metrics_endpoint_reports_requests(self):
        session_id = self._create_session()
        self.client.post("/api/chat", json={"sessionId": session_id, "query": "hi", "context": []})
        summary = self.client.get("/metrics").json()
        self.assertGreaterEqual(summary["throughput"]["total_requests"], 1)
        self.assertIn("text", summary["routes"])


if __name__ == "__main__":
    unittest.main()
