"""
Session-bound service base
==========================
Shared session lifecycle for database-backed services.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.session import get_session_factory


class SessionService:
    """
    Base for services that operate on one AsyncSession.

    Usage:
        async with DocumentService() as service:
            docs = await service.list_documents()

    Or with an existing session (e.g. a request-scoped one):
        service = DocumentService.from_session(session)
    """

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        """
        Args:
            session_factory: Factory for the owned session.
                             If None, uses the process-wide factory.
        """
        self._session_factory = session_factory
        self._session: Optional[AsyncSession] = None
        self._owns_session = True

    @classmethod
    def from_session(cls, session: AsyncSession):
        """
        Create a service using an existing session.

        The caller keeps ownership: the session is not closed by the service.
        """
        instance = cls.__new__(cls)
        instance._session = session
        instance._owns_session = False
        instance._session_factory = None
        return instance

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError(
                f"{type(self).__name__} has no session. Use 'async with' or from_session()."
            )
        return self._session

    async def __aenter__(self):
        if self._owns_session:
            factory = self._session_factory or get_session_factory()
            self._session = factory()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._owns_session and self._session:
            if exc_type is not None:
                await self._session.rollback()
            else:
                await self._session.commit()
            await self._session.close()
            self._session = None
