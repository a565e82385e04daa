# storage/repositories.py: select/insert/update against the SQL store.
# Every public call is one transaction; SQLAlchemy failures surface as PersistenceError.

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from errors import PersistenceError, RecordError
from .models import DesignTemplateRow, ReportGeneration, ScriptRow, User
from .records import (
    DesignTemplate, Script, ScriptVersion,
    script_from_row, template_from_row, version_from_row,
)

logger = logging.getLogger(__name__)


class _SqlStore:
    def __init__(self, session_factory: sessionmaker, user_id: int):
        self._session_factory = session_factory
        self.user_id = user_id

    @contextmanager
    def _transaction(self, operation: str):
        sess = self._session_factory()
        try:
            yield sess
            sess.commit()
        except SQLAlchemyError as exc:
            sess.rollback()
            logger.error("%s failed: %s", operation, exc)
            raise PersistenceError(f"Could not {operation}.") from exc
        finally:
            sess.close()


def ensure_user(session_factory: sessionmaker, email: str, name: str, plan_tier: str = "free") -> int:
    """Return the id of the user with this email, creating it on first use."""
    sess = session_factory()
    try:
        user = sess.execute(select(User).filter_by(email=email)).scalar_one_or_none()
        if not user:
            user = User(email=email, name=name, plan_tier=plan_tier)
            sess.add(user)
            sess.commit()
            logger.info("Created user %s", email)
        return user.id
    except SQLAlchemyError as exc:
        sess.rollback()
        logger.error("ensure user %s failed: %s", email, exc)
        raise PersistenceError("Could not load the current user.") from exc
    finally:
        sess.close()


class ScriptStore(_SqlStore):
    """Rows of ``script_library`` owned by one user."""

    def list_scripts(self) -> List[Script]:
        with self._transaction("load scripts") as sess:
            rows = sess.execute(
                select(ScriptRow).where(ScriptRow.user_id == self.user_id)
            ).scalars().all()
            scripts = []
            for r in rows:
                try:
                    scripts.append(script_from_row(r))
                except RecordError as exc:
                    # unreadable rows are left out of the listing
                    logger.error("Skipping script row %s: %s", r.id, exc)
            return scripts

    def list_versions(self, title: str) -> List[ScriptVersion]:
        with self._transaction("load versions") as sess:
            rows = sess.execute(
                select(ScriptRow).where(ScriptRow.user_id == self.user_id, ScriptRow.title == title)
            ).scalars().all()
            # version is text; order numerically
            return sorted((version_from_row(r) for r in rows), key=lambda v: v.version)

    def latest_version(self, title: str) -> int:
        versions = self.list_versions(title)
        return versions[-1].version if versions else 0

    def title_exists(self, title: str) -> bool:
        with self._transaction("check title") as sess:
            found = sess.execute(
                select(ScriptRow.id).where(ScriptRow.user_id == self.user_id, ScriptRow.title == title).limit(1)
            ).first()
            return found is not None

    def count_titles(self) -> int:
        with self._transaction("count scripts") as sess:
            return sess.execute(
                select(func.count(func.distinct(ScriptRow.title))).where(ScriptRow.user_id == self.user_id)
            ).scalar_one()

    def insert(self, *, title: str, description: str, category: str,
               tags: Sequence[str], content: str, version: int) -> Script:
        with self._transaction("save script") as sess:
            row = ScriptRow(
                user_id=self.user_id,
                title=title,
                description=description,
                sql_script=content,
                categories=[category] if category else [],
                tags=list(tags),
                version=str(version),
            )
            sess.add(row)
            sess.flush()
            return script_from_row(row)

    def update(self, script_id: int, *, description: str, category: str,
               tags: Sequence[str], content: str) -> Script:
        with self._transaction("update script") as sess:
            row = sess.get(ScriptRow, script_id)
            if row is None or row.user_id != self.user_id:
                raise PersistenceError(f"Script {script_id} no longer exists.")
            row.sql_script = content
            row.description = description
            row.categories = [category] if category else []
            row.tags = list(tags)
            sess.flush()
            return script_from_row(row)


class TemplateStore(_SqlStore):
    """Rows of ``design_templates`` owned by one user."""

    def list_templates(self) -> List[DesignTemplate]:
        with self._transaction("load templates") as sess:
            rows = sess.execute(
                select(DesignTemplateRow)
                .where(DesignTemplateRow.user_id == self.user_id)
                .order_by(DesignTemplateRow.created_at.desc(), DesignTemplateRow.id.desc())
            ).scalars().all()
            return [template_from_row(r) for r in rows]

    def get(self, template_id: int) -> Optional[DesignTemplate]:
        with self._transaction("load template") as sess:
            row = sess.get(DesignTemplateRow, template_id)
            if row is None or row.user_id != self.user_id:
                return None
            return template_from_row(row)

    def insert(self, *, name: str, description: str, layout_config: str,
               logo_url: Optional[str]) -> DesignTemplate:
        with self._transaction("create template") as sess:
            row = DesignTemplateRow(
                user_id=self.user_id,
                template_name=name,
                description=description,
                layout_config=layout_config,
                logo_url=logo_url,
            )
            sess.add(row)
            sess.flush()
            return template_from_row(row)

    def update(self, template_id: int, *, layout_config: str,
               logo_url: Optional[str] = None) -> DesignTemplate:
        """The logo URL is only overwritten when a new one is given."""
        with self._transaction("update template") as sess:
            row = sess.get(DesignTemplateRow, template_id)
            if row is None or row.user_id != self.user_id:
                raise PersistenceError(f"Template {template_id} no longer exists.")
            row.layout_config = layout_config
            if logo_url is not None:
                row.logo_url = logo_url
            sess.flush()
            return template_from_row(row)


class UsageStore(_SqlStore):
    def plan_tier(self) -> str:
        with self._transaction("load plan") as sess:
            user = sess.get(User, self.user_id)
            return (user.plan_tier if user else None) or "free"

    def count_generations_since(self, since: datetime) -> int:
        with self._transaction("count report generations") as sess:
            return sess.execute(
                select(func.count(ReportGeneration.id)).where(
                    ReportGeneration.user_id == self.user_id,
                    ReportGeneration.generated_at >= since,
                )
            ).scalar_one()

    def insert_generation(self, *, file_name: str, file_size_kb: Optional[int] = None,
                          template_id: Optional[int] = None, duration_ms: Optional[int] = None,
                          export_type: str = "excel") -> None:
        with self._transaction("record report generation") as sess:
            sess.add(ReportGeneration(
                user_id=self.user_id,
                export_type=export_type,
                export_success=True,
                file_name=file_name,
                file_size_kb=file_size_kb,
                template_id=template_id,
                generation_duration_ms=duration_ms,
            ))
