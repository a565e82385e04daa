# context.py: the single process-wide setup/teardown boundary.
# Everything that needs the database, the current user or the theme gets an AppContext.

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from config import Settings
from storage.blobs import LocalBlobStore
from storage.db import init_db, make_engine, make_session_factory
from storage.repositories import ScriptStore, TemplateStore, UsageStore, ensure_user

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    user_id: int
    blobs: LocalBlobStore
    dark_mode: bool = False

    def script_store(self) -> ScriptStore:
        return ScriptStore(self.session_factory, self.user_id)

    def template_store(self) -> TemplateStore:
        return TemplateStore(self.session_factory, self.user_id)

    def usage_store(self) -> UsageStore:
        return UsageStore(self.session_factory, self.user_id)


def init_context(settings: Settings, engine: Optional[Engine] = None) -> AppContext:
    engine = engine or make_engine(settings.database.url, echo=settings.database.echo)
    init_db(engine)
    session_factory = make_session_factory(engine)
    user_id = ensure_user(
        session_factory, settings.user.email, settings.user.name, settings.user.plan_tier,
    )
    logger.info("Context ready for user %s (%s)", settings.user.email, settings.database.url)
    return AppContext(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        user_id=user_id,
        blobs=LocalBlobStore(settings.storage.blob_dir),
        dark_mode=settings.dark_mode,
    )


def close_context(ctx: AppContext) -> None:
    ctx.engine.dispose()
    logger.info("Context closed")
