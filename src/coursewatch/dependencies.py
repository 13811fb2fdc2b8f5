"""FastAPI dependency injection providers."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request

from coursewatch.errors.exceptions import NotInitializedError


async def get_db(request: Request) -> AsyncGenerator:
    """Yield a database session from the app's session factory."""
    session_factory = request.app.state.db_session_factory
    async with session_factory() as session:
        yield session


def get_worker(request: Request):
    """Return the running notification worker or raise 503."""
    worker = getattr(request.app.state, "worker", None)
    if worker is None or worker.service is None:
        raise NotInitializedError("NotificationWorker")
    return worker


# Type aliases for dependency injection
DBSession = Annotated[object, Depends(get_db)]
Worker = Annotated[object, Depends(get_worker)]
