from typing import Dict, List

from fastapi import Request
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CORE_CATEGORIES: List[Dict[str, str]] = [
	{
		"name": "Response Speed & Timeliness",
		"description": "How quickly the unit responds to emails, inquiries, tickets, or completes requested services.",
	},
	{
		"name": "Staff Professionalism & Attitude",
		"description": "The demeanor, friendliness, and helpfulness of the staff during interactions.",
	},
	{
		"name": "Clarity of Information",
		"description": "How clear, accurate, and accessible the unit's policies, guidelines, and communications are.",
	},
	{
		"name": "Accessibility",
		"description": "How easy it is to reach the unit, book appointments, or access physical/digital locations.",
	},
]


class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
	# Faster model used by the conversational endpoint
	gemini_chat_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_CHAT_MODEL")
	gemini_timeout_seconds: float = Field(default=60.0, validation_alias="GEMINI_TIMEOUT_SECONDS")
	# Vertex configuration
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	institution_name: str = Field(default="the institution", validation_alias="INSTITUTION_NAME")
	# Baseline topics every unit's taxonomy should be able to express
	core_categories: List[Dict[str, str]] = Field(
		default_factory=lambda: [dict(c) for c in DEFAULT_CORE_CATEGORIES],
		validation_alias="CORE_CATEGORIES",
	)

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True, populate_by_name=True)


def get_settings(request: Request) -> Settings:
	return request.app.state.settings
