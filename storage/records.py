# storage/records.py: typed records built from database rows.
# Validation and defaulting of stored values happens here and nowhere else.

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Tuple

from errors import RecordError

logger = logging.getLogger(__name__)

DEFAULT_TABLE_THEME = "TableStyleMedium2"

# built-in Excel table styles
TABLE_THEMES = (
    [f"TableStyleLight{i}" for i in range(1, 22)]
    + [f"TableStyleMedium{i}" for i in range(1, 29)]
    + [f"TableStyleDark{i}" for i in range(1, 12)]
)

# ---------- Scripts ----------

def parse_version(raw) -> int:
    """
    Stored version text -> positive int.
    Missing or blank means version 1; anything else that is not a positive
    integer is rejected.
    """
    if raw is None:
        return 1
    text = str(raw).strip()
    if not text:
        return 1
    try:
        value = int(text)
    except ValueError:
        raise RecordError(f"Invalid script version {raw!r}") from None
    if value < 1:
        raise RecordError(f"Invalid script version {raw!r}")
    return value


def normalize_tags(tags: Iterable[str]) -> Tuple[str, ...]:
    out = []
    for t in tags or ():
        t = str(t).strip()
        if t and t not in out:
            out.append(t)
    return tuple(out)


@dataclass(frozen=True)
class ScriptVersion:
    id: int
    title: str
    version: int
    description: str
    sql_script: str
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Script:
    id: int
    user_id: int
    title: str
    description: str
    category: str
    tags: Tuple[str, ...]
    content: str
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def as_version(self) -> ScriptVersion:
        return ScriptVersion(
            id=self.id,
            title=self.title,
            version=self.version,
            description=self.description,
            sql_script=self.content,
            created_at=self.created_at,
        )


def script_from_row(row) -> Script:
    categories = row.categories or []
    return Script(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        description=row.description or "",
        category=str(categories[0]) if categories else "",
        tags=normalize_tags(row.tags or []),
        content=row.sql_script or "",
        version=parse_version(row.version),
        created_at=row.created_at,
        updated_at=row.updated_at or row.created_at,
    )


def version_from_row(row) -> ScriptVersion:
    return ScriptVersion(
        id=row.id,
        title=row.title,
        version=parse_version(row.version),
        description=row.description or "",
        sql_script=row.sql_script or "",
        created_at=row.created_at,
    )

# ---------- Design templates ----------

def _known_theme(name) -> str:
    if name in TABLE_THEMES:
        return name
    if name:
        logger.warning("Unknown table theme %r, using %s", name, DEFAULT_TABLE_THEME)
    return DEFAULT_TABLE_THEME


@dataclass(frozen=True)
class DesignLayout:
    header_text: str = ""
    footer_text: str = ""
    table_theme: str = DEFAULT_TABLE_THEME
    show_borders: bool = False
    auto_fit_columns: bool = False

    def to_json(self) -> str:
        return json.dumps({
            "headerText": self.header_text,
            "footerText": self.footer_text,
            "tableTheme": self.table_theme,
            "showBorders": self.show_borders,
            "autoFitColumns": self.auto_fit_columns,
        }, sort_keys=True)

    @classmethod
    def from_json(cls, text: Optional[str]) -> "DesignLayout":
        """Unreadable layouts fall back to the defaults."""
        try:
            data = json.loads(text or "{}")
        except (TypeError, json.JSONDecodeError) as exc:
            logger.warning("Unreadable layout config, using defaults: %s", exc)
            return cls()
        if not isinstance(data, dict):
            logger.warning("Layout config is not an object, using defaults")
            return cls()
        return cls(
            header_text=str(data.get("headerText") or ""),
            footer_text=str(data.get("footerText") or ""),
            table_theme=_known_theme(data.get("tableTheme")),
            show_borders=bool(data.get("showBorders")),
            auto_fit_columns=bool(data.get("autoFitColumns")),
        )


@dataclass(frozen=True)
class DesignTemplate:
    id: int
    user_id: int
    name: str
    description: str
    layout: DesignLayout = field(default_factory=DesignLayout)
    logo_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def template_from_row(row) -> DesignTemplate:
    return DesignTemplate(
        id=row.id,
        user_id=row.user_id,
        name=row.template_name,
        description=row.description or "",
        layout=DesignLayout.from_json(row.layout_config),
        logo_url=row.logo_url or None,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
