from __future__ import annotations
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool


DEFAULT_DATABASE_URL = "sqlite:///./studentvoice.db"

Base = declarative_base()


def create_db_engine(database_url: str | None) -> Engine:
	url = database_url or DEFAULT_DATABASE_URL
	if url.startswith("sqlite"):
		kwargs = {"connect_args": {"check_same_thread": False}}
		if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
			# One shared connection so every session sees the same in-memory database
			kwargs["poolclass"] = StaticPool
		return create_engine(url, future=True, **kwargs)
	return create_engine(url, future=True, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker:
	return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


def get_session_factory(request: Request) -> sessionmaker:
	return request.app.state.session_factory


def get_db(request: Request) -> Iterator[Session]:
	db = request.app.state.session_factory()
	try:
		yield db
	finally:
		db.close()
