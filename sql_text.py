# sql_text.py: editor helpers: regex-based SQL highlighting and reformatting.
# Neither is a tokenizer: keywords inside string literals or comments are
# highlighted and rewritten like any other text.

import re

HIGHLIGHT_KEYWORDS = [
    "SELECT", "FROM", "WHERE", "INSERT", "INTO", "UPDATE", "DELETE", "JOIN", "ON",
    "GROUP BY", "ORDER BY", "HAVING", "AS", "AND", "OR", "NOT", "NULL",
]
HIGHLIGHT_FUNCTIONS = ["COUNT", "SUM", "AVG", "MIN", "MAX", "NOW"]

FORMAT_KEYWORDS = [
    "SELECT", "FROM", "WHERE", "INSERT", "INTO", "UPDATE", "DELETE",
    "JOIN", "LEFT", "RIGHT", "INNER", "OUTER", "ON", "AS",
    "GROUP BY", "ORDER BY", "HAVING", "AND", "OR", "NOT", "NULL",
    "LIMIT", "OFFSET", "VALUES", "CREATE", "ALTER", "DROP", "TABLE",
]
CLAUSE_KEYWORDS = ["FROM", "WHERE", "GROUP BY", "ORDER BY", "HAVING"]

KEYWORD_CLASS = "sql-keyword"
FUNCTION_CLASS = "sql-function"


def _alternation(words):
    # longest first so "ORDER BY" is tried before "OR"
    return "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))


_HIGHLIGHT_RE = re.compile(
    r"\b(?:(?P<kw>%s)|(?P<fn>%s))\b" % (_alternation(HIGHLIGHT_KEYWORDS), _alternation(HIGHLIGHT_FUNCTIONS)),
    re.IGNORECASE,
)
_FORMAT_RE = re.compile(r"\b(?:%s)\b" % _alternation(FORMAT_KEYWORDS), re.IGNORECASE)
_CLAUSE_RE = re.compile(r" ?\b(%s)\b" % _alternation(CLAUSE_KEYWORDS))
_WS_RE = re.compile(r"\s+")


def escape_html(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def highlight(sql: str) -> str:
    """
    Return ``sql`` as HTML-safe markup with keywords and functions wrapped in
    ``<span class="sql-keyword">`` / ``<span class="sql-function">``.
    """
    def _wrap(m):
        css = KEYWORD_CLASS if m.group("kw") else FUNCTION_CLASS
        return f'<span class="{css}">{m.group(0)}</span>'

    return _HIGHLIGHT_RE.sub(_wrap, escape_html(sql or ""))


def format_sql(sql: str) -> str:
    """
    Collapse whitespace, uppercase known keywords, start FROM/WHERE/GROUP BY/
    ORDER BY/HAVING on a new line and make sure the statement ends with ``;``.
    Running it on its own output changes nothing.
    """
    formatted = _WS_RE.sub(" ", (sql or "").strip())
    if not formatted:
        return ""
    formatted = _FORMAT_RE.sub(lambda m: m.group(0).upper(), formatted)
    formatted = _CLAUSE_RE.sub(
        lambda m: m.group(1) if m.start() == 0 else "\n" + m.group(1), formatted
    )
    if not formatted.endswith(";"):
        formatted += ";"
    return formatted


def highlight_css(dark: bool = False) -> str:
    keyword, function = ("#60a5fa", "#c084fc") if dark else ("#2563eb", "#9333ea")
    return (
        "<style>"
        f".{KEYWORD_CLASS} {{ color: {keyword}; font-weight: 700; }}"
        f".{FUNCTION_CLASS} {{ color: {function}; }}"
        "</style>"
    )
