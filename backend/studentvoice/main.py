from __future__ import annotations
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .db import Base, create_db_engine, make_session_factory
from .errors import AIError
from .routers import analysis, chat, executive, health, mapping, report, taxonomy
from .settings import Settings

from . import models  # noqa: F401  (registers tables on Base.metadata)


logger = logging.getLogger(__name__)


async def _ai_error_handler(request: Request, exc: AIError) -> JSONResponse:
	logger.error("%s %s failed: %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)
	return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
	fields = [
		{"loc": ".".join(str(p) for p in err.get("loc", ())), "msg": err.get("msg", "")}
		for err in exc.errors()
	]
	logger.info("%s %s rejected: %d invalid fields", request.method, request.url.path, len(fields))
	return JSONResponse(status_code=400, content={"error": "Invalid request body", "details": {"fields": fields}})


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
	return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
	logger.exception("Unhandled error on %s %s", request.method, request.url.path)
	return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
	settings = settings or Settings()
	logging.basicConfig(
		level=settings.log_level.upper(),
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
	)
	logging.getLogger("httpx").setLevel(logging.WARNING)

	app = FastAPI(title="Student Voice Analytics API")
	app.state.settings = settings
	engine = create_db_engine(settings.database_url)
	app.state.engine = engine
	app.state.session_factory = make_session_factory(engine)

	app.add_exception_handler(AIError, _ai_error_handler)
	app.add_exception_handler(RequestValidationError, _validation_error_handler)
	app.add_exception_handler(StarletteHTTPException, _http_error_handler)
	app.add_exception_handler(Exception, _unhandled_error_handler)

	app.include_router(health.router)
	app.include_router(analysis.router)
	app.include_router(mapping.router)
	app.include_router(taxonomy.router)
	app.include_router(report.router)
	app.include_router(chat.router)
	app.include_router(executive.router)

	@app.on_event("startup")
	def startup_event():
		# Initialize DB schema
		Base.metadata.create_all(bind=engine)
		if not settings.gemini_api_key:
			logger.warning("GEMINI_API_KEY is not set; AI routes will fail until it is configured")

	return app


app = create_app()
