# design_templates.py: saved branding presets (layout JSON + optional logo in object storage)

import logging
import time
from pathlib import PurePath
from typing import List, Optional

from errors import ValidationError
from report_assembler import LogoImage, ReportDesign, decode_logo
from storage.blobs import LocalBlobStore
from storage.records import DesignTemplate
from storage.repositories import TemplateStore

logger = logging.getLogger(__name__)


class DesignTemplateService:
    def __init__(self, store: TemplateStore, blobs: LocalBlobStore):
        self.store = store
        self.blobs = blobs

    def list_templates(self) -> List[DesignTemplate]:
        return self.store.list_templates()

    def _logo_url(self, logo: LogoImage) -> str:
        if logo.source_url:
            # already stored; point at the same file
            return logo.source_url
        name = PurePath(logo.name).name or "logo.png"
        path = f"{self.store.user_id}/{int(time.time() * 1000)}-{name}"
        return self.blobs.upload(path, logo.data)

    def create_template(self, name: str, design: ReportDesign, description: str = "") -> DesignTemplate:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Please enter a template name.")
        # upload first: a failed upload must not leave a template behind
        logo_url = self._logo_url(design.logo) if design.logo else None
        template = self.store.insert(
            name=name,
            description=(description or "").strip(),
            layout_config=design.layout().to_json(),
            logo_url=logo_url,
        )
        logger.info("Created template %r (id=%s)", name, template.id)
        return template

    def update_template(self, template_id: Optional[int], design: ReportDesign) -> DesignTemplate:
        """Overwrite the layout; the stored logo changes only when the design carries a logo."""
        if not template_id:
            raise ValidationError("No template selected.")
        logo_url = self._logo_url(design.logo) if design.logo else None
        template = self.store.update(
            template_id,
            layout_config=design.layout().to_json(),
            logo_url=logo_url,
        )
        logger.info("Updated template %r (id=%s)", template.name, template.id)
        return template

    def apply_template(self, template: DesignTemplate, design: ReportDesign) -> ReportDesign:
        """Copy the template's branding onto ``design``, loading its logo if it has one."""
        out = design.with_layout(template.layout)
        if template.logo_url:
            data = self.blobs.read(template.logo_url)
            name = PurePath(template.logo_url).name.split("-", 1)[-1]
            out.logo = decode_logo(data, name=name, source_url=template.logo_url)
        else:
            out.logo = None
        return out
