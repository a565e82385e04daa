import pytest

from design_templates import DesignTemplateService
from errors import PersistenceError, ValidationError
from report_assembler import ReportDesign, decode_logo
from storage.models import DesignTemplateRow
from storage.records import DEFAULT_TABLE_THEME, DesignLayout


@pytest.fixture
def service(ctx):
    return DesignTemplateService(ctx.template_store(), ctx.blobs)


def _design(**kw):
    base = dict(preview_table=[["a"], [1]], header_text="Acme", footer_text="Internal",
                table_theme="TableStyleMedium9", show_borders=True, auto_fit_columns=False)
    base.update(kw)
    return ReportDesign(**base)


def test_name_is_required(service):
    with pytest.raises(ValidationError):
        service.create_template("  ", _design())
    assert service.list_templates() == []


def test_create_and_list_newest_first(service):
    service.create_template("First", _design())
    service.create_template("Second", _design(header_text="Other"), description="alt")
    names = [t.name for t in service.list_templates()]
    assert names == ["Second", "First"]
    second = service.list_templates()[0]
    assert second.description == "alt"
    assert second.layout == DesignLayout("Other", "Internal", "TableStyleMedium9", True, False)
    assert second.logo_url is None


def test_logo_is_uploaded_and_reapplied(service, png_bytes):
    tmpl = service.create_template("Branded", _design(logo=decode_logo(png_bytes, "brand.png")))
    assert tmpl.logo_url.startswith("file://")
    assert tmpl.logo_url.endswith("-brand.png")

    applied = service.apply_template(tmpl, ReportDesign(preview_table=[["x"]]))
    assert applied.preview_table == [["x"]]
    assert applied.header_text == "Acme"
    assert applied.show_borders is True
    assert applied.logo.data == png_bytes
    assert (applied.logo.width, applied.logo.height) == (100, 45)
    assert applied.logo.name == "brand.png"


def test_update_keeps_logo_unless_replaced(service, png_bytes):
    tmpl = service.create_template("Branded", _design(logo=decode_logo(png_bytes, "brand.png")))
    updated = service.update_template(tmpl.id, _design(header_text="New header"))
    assert updated.layout.header_text == "New header"
    assert updated.logo_url == tmpl.logo_url


def test_update_requires_selection(service):
    with pytest.raises(ValidationError):
        service.update_template(None, _design())


def test_failed_logo_upload_creates_nothing(service, png_bytes, monkeypatch):
    def boom(path, data):
        raise PersistenceError("Could not upload file.")

    monkeypatch.setattr(service.blobs, "upload", boom)
    with pytest.raises(PersistenceError):
        service.create_template("Branded", _design(logo=decode_logo(png_bytes)))
    assert service.list_templates() == []


def test_apply_without_logo_clears_uploaded_logo(service, png_bytes):
    tmpl = service.create_template("Plain", _design())
    applied = service.apply_template(tmpl, _design(logo=decode_logo(png_bytes)))
    assert applied.logo is None


def test_unreadable_layout_falls_back_to_defaults(ctx, service):
    sess = ctx.session_factory()
    sess.add(DesignTemplateRow(user_id=ctx.user_id, template_name="Broken", layout_config="{not json"))
    sess.add(DesignTemplateRow(user_id=ctx.user_id, template_name="Odd",
                               layout_config='{"tableTheme": "Nope", "headerText": "kept"}'))
    sess.commit()
    sess.close()
    by_name = {t.name: t for t in service.list_templates()}
    assert by_name["Broken"].layout == DesignLayout()
    assert by_name["Odd"].layout.table_theme == DEFAULT_TABLE_THEME
    assert by_name["Odd"].layout.header_text == "kept"


def test_blob_store_refuses_paths_outside_root(ctx):
    with pytest.raises(PersistenceError):
        ctx.blobs.upload("../escape.png", b"x")
    with pytest.raises(PersistenceError):
        ctx.blobs.read("https://example.com/logo.png")


def _blob_files(ctx):
    return sorted(p.name for p in ctx.settings.storage.blob_dir.rglob("*") if p.is_file())


def test_updating_an_applied_template_reuses_its_logo(ctx, service, png_bytes):
    tmpl = service.create_template("Branded", _design(logo=decode_logo(png_bytes, "brand.png")))
    applied = service.apply_template(tmpl, _design())
    assert applied.logo.source_url == tmpl.logo_url

    service.update_template(tmpl.id, applied)
    updated = service.update_template(tmpl.id, applied.with_layout(DesignLayout(header_text="Again")))
    assert updated.logo_url == tmpl.logo_url
    assert updated.layout.header_text == "Again"
    assert len(_blob_files(ctx)) == 1


def test_new_logo_on_update_is_uploaded(ctx, service, png_bytes):
    tmpl = service.create_template("Branded", _design(logo=decode_logo(png_bytes, "brand.png")))
    updated = service.update_template(tmpl.id, _design(logo=decode_logo(png_bytes, "other.png")))
    assert updated.logo_url != tmpl.logo_url
    assert updated.logo_url.endswith("-other.png")
    assert len(_blob_files(ctx)) == 2
