# script_versions.py: script library with version history (new version vs update in place)

import enum
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from errors import LimitExceededError, ValidationError
from storage.records import Script, ScriptVersion, normalize_tags
from storage.repositories import ScriptStore

logger = logging.getLogger(__name__)


class SaveMode(enum.Enum):
    NEW_VERSION = "new"
    UPDATE_IN_PLACE = "update"


@dataclass(frozen=True)
class ScriptSummary:
    script: Script              # row with the highest version for the title
    version_count: int
    last_updated: Optional[datetime]

    @property
    def title(self) -> str:
        return self.script.title


@dataclass(frozen=True)
class EditSession:
    """
    One editor session on a script.
    ``original_version`` is the change-detection baseline; ``current_id`` and
    ``current_version`` point at the row an in-place update would overwrite.
    """
    script: Script
    original_version: ScriptVersion
    current_id: int
    current_version: int
    content: str
    description: str

    @property
    def title(self) -> str:
        return self.script.title


def group_library(scripts: Sequence[Script], search: str = "") -> List[ScriptSummary]:
    """
    Group rows by title: the representative is the numerically highest
    version, ``version_count`` the number of rows. Most recently updated first.
    """
    groups: Dict[str, List[Script]] = {}
    for s in scripts:
        groups.setdefault(s.title, []).append(s)

    needle = search.strip().lower()
    out: List[ScriptSummary] = []
    for title, rows in groups.items():
        if needle and needle not in title.lower():
            continue
        current = max(rows, key=lambda r: r.version)
        stamps = [r.updated_at for r in rows if r.updated_at is not None]
        out.append(ScriptSummary(
            script=current,
            version_count=len(rows),
            last_updated=max(stamps) if stamps else None,
        ))
    out.sort(key=lambda g: (g.last_updated or datetime.min, g.title), reverse=True)
    return out


def detect_content_change(session: EditSession, content: str) -> bool:
    """Exact comparison with the baseline; whitespace counts."""
    return content != session.original_version.sql_script


def offered_mode(session: EditSession, content: str) -> SaveMode:
    return SaveMode.NEW_VERSION if detect_content_change(session, content) else SaveMode.UPDATE_IN_PLACE


class VersionManager:
    """
    Creates scripts, saves edits either as a new version or in place, and
    keeps the library and per-title version lists it last loaded.
    """
    def __init__(self, store: ScriptStore, script_limit: Optional[int] = None):
        self.store = store
        self.script_limit = script_limit    # None = unlimited
        self.library: List[ScriptSummary] = []
        self.versions: Dict[str, List[ScriptVersion]] = {}

    # loaders
    def refresh_library(self, search: str = "") -> List[ScriptSummary]:
        self.library = group_library(self.store.list_scripts(), search)
        return self.library

    def load_versions(self, title: str) -> List[ScriptVersion]:
        versions = self.store.list_versions(title)
        self.versions[title] = versions
        return versions

    # create
    def create_script(self, *, title: str, description: str, category: str = "",
                      tags: Sequence[str] = (), content: str) -> Script:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Please enter a script title.")
        if not (content or "").strip():
            raise ValidationError("Please enter the SQL for this script.")
        if self.store.title_exists(title):
            raise ValidationError(f"A script titled {title!r} already exists. Open it to add a version.")
        if self.script_limit is not None and self.store.count_titles() >= self.script_limit:
            raise LimitExceededError(
                f"Your plan allows {self.script_limit} scripts.",
                "Upgrade to save more scripts.",
            )

        script = self.store.insert(
            title=title,
            description=(description or "").strip(),
            category=(category or "").strip(),
            tags=normalize_tags(tags),
            content=content,
            version=1,
        )
        logger.info("Created script %r (id=%s)", title, script.id)
        self.refresh_library()
        self.load_versions(title)
        return script

    # edit
    def begin_edit(self, script: Script) -> EditSession:
        return EditSession(
            script=script,
            original_version=script.as_version(),
            current_id=script.id,
            current_version=script.version,
            content=script.content,
            description=script.description,
        )

    def restore(self, session: EditSession, version: ScriptVersion) -> EditSession:
        """Load a historical version; it becomes the new change-detection baseline."""
        if version.title != session.title:
            raise ValidationError(f"Version belongs to {version.title!r}, not {session.title!r}.")
        return replace(
            session,
            original_version=version,
            current_id=version.id,
            current_version=version.version,
            content=version.sql_script,
            description=version.description,
        )

    def save(self, session: EditSession, *, description: str, category: str,
             tags: Sequence[str], content: str, mode: SaveMode) -> ScriptVersion:
        """
        Persist an edit with an explicit ``mode``.
        NEW_VERSION inserts ``latest + 1`` for the title; UPDATE_IN_PLACE
        overwrites the row the session points at. Lists are refreshed only
        after the write succeeds.
        """
        description = (description or "").strip()
        if not description:
            raise ValidationError("Please describe this version before saving.")
        if not isinstance(mode, SaveMode):
            raise ValidationError(f"Unknown save mode {mode!r}.")

        tags = normalize_tags(tags)
        category = (category or "").strip()

        if mode is SaveMode.NEW_VERSION:
            # after a restore the pointer can be behind the newest row
            next_version = max(session.current_version, self.store.latest_version(session.title)) + 1
            saved = self.store.insert(
                title=session.title,
                description=description,
                category=category,
                tags=tags,
                content=content,
                version=next_version,
            )
            logger.info("Saved %r as version %s", session.title, next_version)
        else:
            saved = self.store.update(
                session.current_id,
                description=description,
                category=category,
                tags=tags,
                content=content,
            )
            logger.info("Updated %r version %s in place", session.title, saved.version)

        self.refresh_library()
        self.load_versions(session.title)
        return saved.as_version()
