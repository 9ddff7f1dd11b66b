from __future__ import annotations
import re
from typing import Any, List, Optional, Tuple

from studentvoice.db import Base
from studentvoice.gemini_client import ResponseMode, get_model_client
from studentvoice.main import create_app
from studentvoice.settings import Settings


class FakeModelClient:
	"""Stands in for GeminiClient; returns a canned response and records prompts."""

	def __init__(self, response: Any) -> None:
		self.response = response
		self.calls: List[Tuple[str, ResponseMode, Optional[str]]] = []

	async def invoke(self, prompt: str, mode: ResponseMode = ResponseMode.JSON, *, model: Optional[str] = None) -> Any:
		self.calls.append((prompt, mode, model))
		if isinstance(self.response, Exception):
			raise self.response
		return self.response

	@property
	def last_prompt(self) -> str:
		return self.calls[-1][0]


def make_settings(db_dir: str, **overrides: Any) -> Settings:
	values = {
		"GEMINI_API_KEY": "test-key",
		"DATABASE_URL": f"sqlite:///{db_dir}/test.db",
		"INSTITUTION_NAME": "Test University",
		"GEMINI_CHAT_MODEL": "gemini-chat-test",
	}
	values.update(overrides)
	return Settings(**values)


def make_app(db_dir: str, fake: Optional[FakeModelClient] = None, **overrides: Any):
	app = create_app(make_settings(db_dir, **overrides))
	Base.metadata.create_all(bind=app.state.engine)
	if fake is not None:
		app.dependency_overrides[get_model_client] = lambda: fake
	return app


def outside_envelopes(prompt: str) -> str:
	"""The prompt with every ``<user_data>`` envelope body removed."""
	return re.sub(r"<user_data>\n.*?\n</user_data>", "", prompt, flags=re.DOTALL)
