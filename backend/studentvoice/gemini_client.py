from __future__ import annotations
import json
import logging
import re
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional

import httpx
from fastapi import Depends

from .errors import Misconfigured, UpstreamInvalidOutput, UpstreamTransportError, raw_excerpt
from .settings import Settings, get_settings


logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*")


class ResponseMode(str, Enum):
	JSON = "json"
	TEXT = "text"


def strip_code_fences(text: str) -> str:
	return _FENCE_PATTERN.sub("", text).strip()


class GeminiClient:
	def __init__(self, settings: Settings, *, model: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
		self.settings = settings
		self.api_key = settings.gemini_api_key
		self.model = model or settings.gemini_model
		self.provider = settings.gemini_provider
		self._client = httpx.AsyncClient(timeout=settings.gemini_timeout_seconds, transport=transport)

	def endpoint(self, model: str) -> str:
		if self.provider == "vertex":
			region = self.settings.vertex_region
			project = self.settings.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			return (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{model}:generateContent"
			)
		# Google AI Studio (Generative Language API)
		return f"https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

	async def invoke(self, prompt: str, mode: ResponseMode = ResponseMode.JSON, *, model: Optional[str] = None) -> Any:
		"""Send one prompt and return parsed JSON (JSON mode) or the cleaned text.

		Single attempt; failures are raised as ``AIError`` subclasses.
		"""
		if not self.api_key:
			raise Misconfigured(
				"GEMINI_API_KEY is not configured",
				details={"hint": "Set GEMINI_API_KEY in the environment or the .env file and restart the service."},
			)
		model = model or self.model
		payload: Dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
		if mode is ResponseMode.JSON:
			payload["generationConfig"] = {"responseMimeType": "application/json"}
		text = strip_code_fences(await self._post_payload(model, payload))
		if mode is ResponseMode.TEXT:
			return text
		try:
			return json.loads(text)
		except json.JSONDecodeError as exc:
			logger.warning("Model %s returned invalid JSON (%d chars)", model, len(text))
			raise UpstreamInvalidOutput(
				f"AI returned invalid JSON. Raw response: {raw_excerpt(text)}",
				details={"raw": raw_excerpt(text)},
			) from exc

	async def _post_payload(self, model: str, payload: Dict[str, Any]) -> str:
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self.provider == "vertex":
			headers["x-goog-api-key"] = self.api_key or ""
		else:
			params["key"] = self.api_key
		logger.debug("Calling %s (%s)", model, self.provider)
		try:
			r = await self._client.post(self.endpoint(model), params=params, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			raise UpstreamTransportError(
				f"Gemini request failed with status {http_err.response.status_code}",
				details={"body": raw_excerpt(http_err.response.text)},
			) from http_err
		except httpx.RequestError as net_err:
			raise UpstreamTransportError(f"Gemini request failed: {net_err}") from net_err
		try:
			data = r.json()
			return data["candidates"][0]["content"]["parts"][0]["text"]
		except (ValueError, KeyError, IndexError, TypeError) as exc:
			raise UpstreamTransportError(
				"Unexpected Gemini response",
				details={"body": raw_excerpt(r.text)},
			) from exc

	async def aclose(self) -> None:
		await self._client.aclose()


async def get_model_client(settings: Settings = Depends(get_settings)) -> AsyncIterator[GeminiClient]:
	client = GeminiClient(settings)
	try:
		yield client
	finally:
		await client.aclose()
