from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Boolean, JSON, Index
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    email = Column(String, unique=True, nullable=False)
    name = Column(String)
    plan_tier = Column(String, nullable=False, default="free")   # free | professional | enterprise
    created_at = Column(DateTime, default=utcnow)
    scripts = relationship("ScriptRow", back_populates="user")
    templates = relationship("DesignTemplateRow", back_populates="user")


class ScriptRow(Base):
    """One version of a script; rows sharing (user_id, title) form its history."""
    __tablename__ = "script_library"
    __table_args__ = (Index("ix_script_library_user_title", "user_id", "title"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text)
    sql_script = Column(Text, nullable=False, default="")
    categories = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=False, default=list)
    version = Column(String)        # positive integer stored as text
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    user = relationship("User", back_populates="scripts")


class DesignTemplateRow(Base):
    __tablename__ = "design_templates"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    template_name = Column(String, nullable=False)
    description = Column(Text)
    layout_config = Column(Text)    # JSON string
    logo_url = Column(String)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    user = relationship("User", back_populates="templates")


class ReportGeneration(Base):
    __tablename__ = "report_generations"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    generated_at = Column(DateTime, default=utcnow, index=True)
    export_type = Column(String, nullable=False, default="excel")
    export_success = Column(Boolean, nullable=False, default=True)
    file_name = Column(String)
    file_size_kb = Column(Integer)
    template_id = Column(Integer, ForeignKey("design_templates.id"))
    generation_duration_ms = Column(Integer)
