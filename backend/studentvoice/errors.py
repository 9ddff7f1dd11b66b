from __future__ import annotations
from typing import Any, Dict, Optional


class AIError(Exception):
	"""Base error for the analysis routes; rendered as ``{error, details?}``."""

	status_code = 500

	def __init__(self, message: str, *, status_code: Optional[int] = None, details: Optional[Dict[str, Any]] = None) -> None:
		super().__init__(message)
		self.message = message
		if status_code is not None:
			self.status_code = status_code
		self.details = details

	def to_body(self) -> Dict[str, Any]:
		body: Dict[str, Any] = {"error": self.message}
		if self.details:
			body["details"] = self.details
		return body


class RequestValidationFailed(AIError):
	status_code = 400


class Misconfigured(AIError):
	status_code = 500


class UpstreamInvalidOutput(AIError):
	status_code = 502


class UpstreamTransportError(AIError):
	status_code = 500


RAW_EXCERPT_LENGTH = 200


def raw_excerpt(text: str) -> str:
	if len(text) <= RAW_EXCERPT_LENGTH:
		return text
	return text[:RAW_EXCERPT_LENGTH] + "..."
