# --- app.py (Reportly: SQL script library + branded Excel reports) ---

import atexit
import logging
from zipfile import BadZipFile

import pandas as pd
import streamlit as st

from config import configure_logging, get_settings
from context import AppContext, close_context, init_context
from dataio.exports import XLSX_MIME, generate_report
from dataio.parsers import UNSUPPORTED_FILE, parse_tags, read_logo, read_preview_table
from design_templates import DesignTemplateService
from errors import LimitExceededError, ReportlyError
from report_assembler import ReportDesign, column_names
from script_versions import SaveMode, VersionManager, detect_content_change, offered_mode
from sql_text import format_sql, highlight, highlight_css
from storage.records import TABLE_THEMES
from usage_limits import UsageLimits

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger("reportly.app")

st.set_page_config(page_title=settings.app_name, layout="wide")
st.title("📊 Reportly")


@st.cache_resource
def _context() -> AppContext:
    # one context per server process; disposed on interpreter exit
    ctx = init_context(settings)
    atexit.register(close_context, ctx)
    return ctx


def _show_error(exc: ReportlyError):
    if isinstance(exc, LimitExceededError):
        st.warning(f"{exc} {exc.upgrade_message}")
    else:
        st.error(str(exc))


try:
    ctx = _context()
except ReportlyError as exc:
    _show_error(exc)
    st.stop()

limits = UsageLimits(
    ctx.usage_store(), ctx.script_store(),
    free_monthly_reports=settings.limits.free_monthly_reports,
    free_scripts=settings.limits.free_scripts,
)
templates = DesignTemplateService(ctx.template_store(), ctx.blobs)

ss = st.session_state
ss.setdefault("view", "list")
ss.setdefault("saving", False)

with st.sidebar:
    st.header("Appearance")
    dark = st.toggle("Dark editor theme", value=ctx.dark_mode)
st.markdown(highlight_css(dark), unsafe_allow_html=True)

# ---- TABS
tab_scripts, tab_reports, tab_usage = st.tabs(["🗂 Script Library", "📄 Report Designer", "📈 Usage"])

# ===================== SCRIPT LIBRARY =====================

try:
    script_limit = limits.script_limit()
except ReportlyError as exc:
    _show_error(exc)
    st.stop()


def _manager() -> VersionManager:
    return VersionManager(ctx.script_store(), script_limit=script_limit)


def _load_editor(session):
    ss.edit_session = session
    ss.pop("ed_version_idx", None)
    ss.ed_content = session.content
    ss.ed_description = ""
    ss.ed_category = session.script.category
    ss.ed_tags = ", ".join(session.script.tags)


def _open_script(script):
    _load_editor(_manager().begin_edit(script))
    ss.view = "editor"


def _close_editor():
    ss.view = "list"
    ss.pop("edit_session", None)


def _format_editor():
    ss.ed_content = format_sql(ss.ed_content)


def _restore_version(versions):
    chosen = versions[ss.ed_version_idx]
    _load_editor(_manager().restore(ss.edit_session, chosen))
    ss.ed_description = chosen.description


with tab_scripts:
    manager = _manager()
    if "flash" in ss:
        st.success(ss.pop("flash"))

    if ss.view == "new":
        st.subheader("New Script")
        with st.form("new_script"):
            title = st.text_input("Title")
            description = st.text_input("Description")
            category = st.text_input("Category")
            tags = st.text_input("Tags (comma separated)")
            content = st.text_area("SQL", height=240)
            c1, c2 = st.columns(2)
            create = c1.form_submit_button("Save Script")
            cancel = c2.form_submit_button("Cancel")
        if cancel:
            ss.view = "list"
            st.rerun()
        if create:
            try:
                manager.create_script(title=title, description=description, category=category,
                                      tags=parse_tags(tags), content=content)
            except ReportlyError as exc:
                _show_error(exc)
            else:
                ss.flash = f"Script “{title.strip()}” saved as version 1."
                ss.view = "list"
                st.rerun()

    elif ss.view == "editor" and "edit_session" in ss:
        session = ss.edit_session
        try:
            versions = manager.load_versions(session.title)
        except ReportlyError as exc:
            _show_error(exc)
            versions = []

        st.subheader(f"{session.title} (v{session.current_version})")
        if session.script.updated_at:
            st.caption(f"Last updated: {session.script.updated_at:%Y-%m-%d %H:%M}")

        # version history
        if versions:
            labels = [
                f"Version {v.version}"
                + (f" • {v.created_at:%Y-%m-%d}" if v.created_at else "")
                + (f" - {v.description}" if v.description else "")
                for v in versions
            ]
            current_idx = next((i for i, v in enumerate(versions) if v.id == session.current_id), len(versions) - 1)
            h1, h2 = st.columns([4, 1])
            h1.selectbox(f"Version History ({len(versions)})", range(len(versions)),
                         index=current_idx, format_func=lambda i: labels[i], key="ed_version_idx")
            h2.button("Restore", on_click=_restore_version, args=(versions,), use_container_width=True)
        else:
            st.caption("No versions available")

        left, right = st.columns(2)
        with left:
            st.text_area("SQL", key="ed_content", height=320)
            st.button("Format SQL", on_click=_format_editor)
        with right:
            st.caption("Preview")
            st.markdown(f"<pre style='white-space: pre-wrap'>{highlight(ss.ed_content)}</pre>",
                        unsafe_allow_html=True)

        st.text_input("Version description (required)", key="ed_description")
        m1, m2 = st.columns(2)
        m1.text_input("Category", key="ed_category")
        m2.text_input("Tags (comma separated)", key="ed_tags")

        changed = detect_content_change(session, ss.ed_content)
        suggested = offered_mode(session, ss.ed_content)
        st.caption("SQL changed since this version was loaded." if changed else "SQL unchanged.")
        mode_labels = {
            SaveMode.NEW_VERSION: f"Save as new version (v{max([session.current_version] + [v.version for v in versions]) + 1})",
            SaveMode.UPDATE_IN_PLACE: f"Update version {session.current_version}",
        }
        mode = st.radio("Save mode", list(SaveMode), index=list(SaveMode).index(suggested),
                        format_func=mode_labels.get, horizontal=True)

        b1, b2 = st.columns(2)
        if b1.button("Save", type="primary", disabled=ss.saving):
            ss.saving = True
            try:
                saved = manager.save(session, description=ss.ed_description, category=ss.ed_category,
                                     tags=parse_tags(ss.ed_tags), content=ss.ed_content, mode=mode)
            except ReportlyError as exc:
                _show_error(exc)
            else:
                ss.flash = f"Saved {session.title} v{saved.version}."
                _close_editor()
                st.rerun()
            finally:
                ss.saving = False
        b2.button("Cancel", on_click=_close_editor)

    else:
        top_l, top_r = st.columns([4, 1])
        search = top_l.text_input("Search scripts", placeholder="Search by title")
        if top_r.button("➕ New Script", use_container_width=True):
            ss.view = "new"
            st.rerun()
        try:
            library = manager.refresh_library(search)
        except ReportlyError as exc:
            _show_error(exc)
            library = []

        if not library:
            st.info("No scripts yet. Create one with **New Script**.")
        for summary in library:
            s = summary.script
            with st.container(border=True):
                c1, c2 = st.columns([5, 1])
                c1.markdown(f"**{s.title}**  \n{s.description or ''}")
                meta = [s.category] if s.category else []
                if summary.last_updated:
                    meta.append(f"{summary.last_updated:%Y-%m-%d}")
                meta.append(f"v{s.version} • {summary.version_count} version(s)")
                c1.caption(" • ".join(meta))
                if s.tags:
                    c1.caption(" ".join(f"`{t}`" for t in s.tags))
                c2.button("Open", key=f"open_{s.id}", on_click=_open_script, args=(s,),
                          use_container_width=True)
                with st.expander("SQL"):
                    st.code(s.content, language="sql")

# ===================== REPORT DESIGNER =====================

ss.setdefault("rd_header", "")
ss.setdefault("rd_footer", "")
ss.setdefault("rd_theme", settings.report.default_theme if settings.report.default_theme in TABLE_THEMES
              else TABLE_THEMES[0])
ss.setdefault("rd_borders", False)
ss.setdefault("rd_autofit", False)


def _current_design() -> ReportDesign:
    return ReportDesign(
        preview_table=ss.get("rd_preview"),
        header_text=ss.rd_header,
        footer_text=ss.rd_footer,
        logo=ss.get("rd_logo"),
        table_theme=ss.rd_theme,
        show_borders=ss.rd_borders,
        auto_fit_columns=ss.rd_autofit,
    )


def _apply_template(template):
    try:
        design = templates.apply_template(template, _current_design())
    except ReportlyError as exc:
        ss.rd_flash = ("error", str(exc))
        return
    ss.rd_header, ss.rd_footer = design.header_text, design.footer_text
    ss.rd_theme, ss.rd_borders, ss.rd_autofit = design.table_theme, design.show_borders, design.auto_fit_columns
    ss.rd_logo = design.logo
    ss.rd_template_id = template.id
    ss.rd_flash = ("success", f"Applied template “{template.name}”.")


with tab_reports:
    with st.sidebar:
        st.divider()
        st.header("Templates")
        try:
            tmpl_list = templates.list_templates()
        except ReportlyError as exc:
            _show_error(exc)
            tmpl_list = []
        if not tmpl_list:
            st.caption("No templates found. Create one below.")
        else:
            tmpl_map = {t.id: t for t in tmpl_list}
            sel_id = st.selectbox("Saved templates", list(tmpl_map), format_func=lambda i: tmpl_map[i].name)
            st.button("Apply Template", on_click=_apply_template, args=(tmpl_map[sel_id],))
            if st.button("Update Selected Template"):
                try:
                    templates.update_template(sel_id, _current_design())
                except ReportlyError as exc:
                    _show_error(exc)
                else:
                    st.success("Template updated successfully.")
        new_name = st.text_input("New template name")
        new_desc = st.text_input("Template description")
        if st.button("Save New Template"):
            try:
                templates.create_template(new_name, _current_design(), description=new_desc)
            except ReportlyError as exc:
                _show_error(exc)
            else:
                st.success("Template created successfully.")
                st.rerun()

    flash = ss.pop("rd_flash", None)
    if flash:
        getattr(st, flash[0])(flash[1])

    upload = st.file_uploader("Data file (XLSX or CSV)")
    if upload is not None and ss.get("rd_file") != (upload.name, upload.size):
        try:
            ss.rd_preview = read_preview_table(upload.name, upload)
            ss.rd_file = (upload.name, upload.size)
        except (ValueError, OSError, BadZipFile) as exc:
            logger.error("Could not read %s: %s", upload.name, exc)
            st.error(f"Could not read {upload.name}: {exc}")
    elif upload is None:
        ss.pop("rd_preview", None)
        ss.pop("rd_file", None)

    preview = ss.get("rd_preview")
    if not preview:
        st.info("Upload a CSV or XLSX file to design a report.")
    else:
        st.caption(f"Uploaded file: {ss.rd_file[0]}")
        if preview == UNSUPPORTED_FILE:
            st.warning(preview[0][0])
        else:
            st.subheader("Data Preview")
            st.dataframe(pd.DataFrame(preview[1:], columns=column_names(preview[0])),
                         use_container_width=True)

        st.subheader("Branding & Report Options")
        o1, o2 = st.columns(2)
        with o1:
            # a new key gives a fresh uploader after "Remove logo"
            logo_key = f"rd_logo_upload_{ss.get('rd_logo_nonce', 0)}"
            logo_file = st.file_uploader("Institution logo", type=["png", "jpg", "jpeg"], key=logo_key)
            if logo_file is not None and ss.get("rd_logo_file") != (logo_file.name, logo_file.size):
                try:
                    ss.rd_logo = read_logo(logo_file.name, logo_file.getvalue())
                    ss.rd_logo_file = (logo_file.name, logo_file.size)
                except ReportlyError as exc:
                    _show_error(exc)
            if ss.get("rd_logo"):
                st.image(ss.rd_logo.data, width=160)
                if st.button("Remove logo"):
                    ss.rd_logo = None
                    ss.pop("rd_logo_file", None)
                    ss.rd_logo_nonce = ss.get("rd_logo_nonce", 0) + 1
                    st.rerun()
            st.selectbox("Excel table theme", TABLE_THEMES, key="rd_theme")
            st.checkbox("Show borders", key="rd_borders")
            st.checkbox("Auto-fit columns", key="rd_autofit")
        with o2:
            st.text_input("Header text", key="rd_header", placeholder="Enter header text")
            st.text_input("Footer text", key="rd_footer", placeholder="Enter footer text")

        design = _current_design()
        if st.button("Generate Report", type="primary"):
            try:
                export = generate_report(design, limits, template_id=ss.get("rd_template_id"))
            except ReportlyError as exc:
                _show_error(exc)
            else:
                ss.rd_download = export
                if not export.recorded:
                    st.warning("Report generated, but this generation could not be counted.")

        export = ss.get("rd_download")
        if export and export.is_current(design):
            st.download_button("Download Excel", data=export.data, file_name=export.file_name, mime=XLSX_MIME)
        elif export:
            ss.pop("rd_download", None)

# ===================== USAGE =====================
with tab_usage:
    st.subheader("Plan & Usage")
    try:
        plan = ctx.usage_store().plan_tier()
        reports = limits.report_usage()
        scripts = limits.script_usage()
    except ReportlyError as exc:
        _show_error(exc)
    else:
        c1, c2, c3 = st.columns(3)
        c1.metric("Plan", plan.title())
        c2.metric("Reports this month",
                  f"{reports.current}" + ("" if reports.is_unlimited else f" / {reports.limit}"))
        c3.metric("Scripts", f"{scripts.current}" + ("" if scripts.is_unlimited else f" / {scripts.limit}"))
        for label, info in (("Reports", reports), ("Scripts", scripts)):
            if info.percent_used is not None:
                st.progress(min(info.percent_used, 100) / 100, text=f"{label}: {info.percent_used}% used")
        if reports.has_reached_limit or scripts.has_reached_limit:
            st.warning("You have reached a limit of the free plan. Upgrade to keep going.")
