"""
Document store handle: async SQLAlchemy engine, session factory and declarative base.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for all collections."""


class DocumentStore:
    """Owns the engine for the lifetime of the application.

    Connect once at startup, hand out sessions per request, and on shutdown
    wait for in-flight sessions before disposing the pool.
    """

    def __init__(self, url: str, *, echo: bool = False):
        self.url = url
        self.echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._session_maker: Optional[async_sessionmaker[AsyncSession]] = None
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._closing = False

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Document store is not connected.")
        return self._engine

    @property
    def session_maker(self) -> async_sessionmaker[AsyncSession]:
        if self._session_maker is None:
            raise RuntimeError("Document store is not connected.")
        return self._session_maker

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def connect(self) -> None:
        if self._engine is not None:
            return
        self._engine = create_async_engine(self.url, echo=self.echo, pool_pre_ping=True)
        self._session_maker = async_sessionmaker(self._engine, class_=AsyncSession, expire_on_commit=False)
        self._closing = False
        logger.info("document_store_connected url=%s", self._engine.url.render_as_string(hide_password=True))

    async def create_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        if self._closing:
            raise RuntimeError("Document store is shutting down.")
        self._in_flight += 1
        self._idle.clear()
        try:
            async with self.session_maker() as session:
                yield session
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.set()

    async def close(self, drain_seconds: float = 10.0) -> None:
        """Stop handing out sessions, drain in-flight work, then dispose the pool."""
        if self._engine is None:
            return
        self._closing = True
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=max(drain_seconds, 0))
        except asyncio.TimeoutError:
            logger.warning("document_store_drain_timeout in_flight=%s", self._in_flight)
        await self._engine.dispose()
        self._engine = None
        self._session_maker = None
        logger.info("document_store_closed")


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a session from the application's store."""
    store: DocumentStore = request.app.state.store
    async with store.session() as session:
        yield session
