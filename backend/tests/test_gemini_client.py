import json
import tempfile
import unittest

import httpx

from studentvoice.errors import Misconfigured, UpstreamInvalidOutput, UpstreamTransportError
from studentvoice.gemini_client import GeminiClient, ResponseMode, strip_code_fences

from support import make_settings


def gemini_reply(text):
	return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class TestGeminiClient(unittest.IsolatedAsyncioTestCase):

	def setUp(self):
		self.tmp = tempfile.TemporaryDirectory()
		self.requests = []

	def tearDown(self):
		self.tmp.cleanup()

	def _client(self, handler, **overrides):
		def record(request):
			self.requests.append(request)
			return handler(request)
		settings = make_settings(self.tmp.name, **overrides)
		return GeminiClient(settings, transport=httpx.MockTransport(record))

	async def test_json_mode_parses_fenced_output(self):
		client = self._client(lambda r: httpx.Response(200, json=gemini_reply('```json\n{"results": []}\n```')))
		try:
			self.assertEqual(await client.invoke("prompt"), {"results": []})
		finally:
			await client.aclose()
		body = json.loads(self.requests[0].content)
		self.assertEqual(body["generationConfig"], {"responseMimeType": "application/json"})
		self.assertEqual(body["contents"][0]["parts"][0]["text"], "prompt")
		self.assertEqual(self.requests[0].url.params["key"], "test-key")
		self.assertIn("gemini-2.5-flash:generateContent", str(self.requests[0].url))

	async def test_text_mode_returns_text_without_json_config(self):
		client = self._client(lambda r: httpx.Response(200, json=gemini_reply("  **Hello**  ")))
		try:
			reply = await client.invoke("prompt", ResponseMode.TEXT, model="gemini-fast")
		finally:
			await client.aclose()
		self.assertEqual(reply, "**Hello**")
		self.assertNotIn("generationConfig", json.loads(self.requests[0].content))
		self.assertIn("gemini-fast:generateContent", str(self.requests[0].url))

	async def test_invalid_json_is_upstream_error_with_excerpt(self):
		client = self._client(lambda r: httpx.Response(200, json=gemini_reply("not json " * 100)))
		try:
			with self.assertRaises(UpstreamInvalidOutput) as ctx:
				await client.invoke("prompt")
		finally:
			await client.aclose()
		self.assertEqual(ctx.exception.status_code, 502)
		self.assertTrue(ctx.exception.details["raw"].startswith("not json"))
		self.assertLessEqual(len(ctx.exception.details["raw"]), 203)

	async def test_missing_key_fails_before_network(self):
		client = self._client(lambda r: httpx.Response(200, json=gemini_reply("{}")), GEMINI_API_KEY=None)
		try:
			with self.assertRaises(Misconfigured):
				await client.invoke("prompt")
		finally:
			await client.aclose()
		self.assertEqual(self.requests, [])

	async def test_http_error_is_single_attempt_transport_error(self):
		client = self._client(lambda r: httpx.Response(503, text="overloaded"))
		try:
			with self.assertRaises(UpstreamTransportError):
				await client.invoke("prompt")
		finally:
			await client.aclose()
		self.assertEqual(len(self.requests), 1)

	async def test_unexpected_envelope_is_transport_error(self):
		client = self._client(lambda r: httpx.Response(200, json={"candidates": []}))
		try:
			with self.assertRaises(UpstreamTransportError):
				await client.invoke("prompt")
		finally:
			await client.aclose()

	async def test_vertex_provider_sends_key_in_header(self):
		client = self._client(
			lambda r: httpx.Response(200, json=gemini_reply("{}")),
			GEMINI_PROVIDER="vertex",
			GEMINI_VERTEX_PROJECT="proj",
		)
		try:
			await client.invoke("prompt")
		finally:
			await client.aclose()
		request = self.requests[0]
		self.assertEqual(request.headers["x-goog-api-key"], "test-key")
		self.assertIn("/projects/proj/", str(request.url))


class TestStripCodeFences(unittest.TestCase):

	def test_removes_fences(self):
		self.assertEqual(strip_code_fences('```json\n[1]\n```'), "[1]")
		self.assertEqual(strip_code_fences("plain"), "plain")


if __name__ == "__main__":
	unittest.main()
