"""Versioned content models: modules, meca aids, their categories and settings."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from mecasync.database import Base
from mecasync.timeutil import utcnow


class VersionedMixin:
    """
    Columns shared by every syncable content entity.

    `version` starts at 1 and is bumped by the content repository on each
    mutation, together with a strictly later `updated_at`. Rows are never
    removed; deletion clears `is_active`.
    """
    version = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False, index=True)


class ModuleCategory(Base):
    __tablename__ = "module_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    modules = relationship("Module", back_populates="category")


class MecaAidCategory(Base):
    __tablename__ = "meca_aid_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    meca_aids = relationship("MecaAid", back_populates="category")


class Module(VersionedMixin, Base):
    """
    Module model representing a mechanic manual.

    Modules can be downloaded for offline use; the download ledger records
    which version each device holds.
    """
    __tablename__ = "modules"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String, unique=True, nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("module_categories.id"), nullable=True)

    # Module details
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    thumbnail_url = Column(String, nullable=True)
    is_downloadable = Column(Boolean, nullable=False, default=True)
    priority = Column(Integer, nullable=False, default=0)

    # Relationships
    category = relationship("ModuleCategory", back_populates="modules")

    def __repr__(self):
        return f"<Module(id={self.id}, uuid={self.uuid}, version={self.version}, title='{self.title}')>"


class MecaAid(VersionedMixin, Base):
    """
    Diagnostic aid: a problem description with an ordered list of steps.
    """
    __tablename__ = "meca_aids"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String, unique=True, nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("meca_aid_categories.id"), nullable=True)

    title = Column(String, nullable=False)
    problem_description = Column(Text, nullable=True)
    symptoms = Column(Text, nullable=True)
    causes = Column(Text, nullable=True)
    solutions = Column(Text, nullable=True)
    tools_required = Column(Text, nullable=True)
    difficulty_level = Column(String, nullable=True)
    estimated_time = Column(Integer, nullable=True)  # Minutes

    # Relationships
    category = relationship("MecaAidCategory", back_populates="meca_aids")

    def __repr__(self):
        return f"<MecaAid(id={self.id}, uuid={self.uuid}, version={self.version}, title='{self.title}')>"


class MecaAidStep(Base):
    __tablename__ = "meca_aid_steps"

    id = Column(Integer, primary_key=True, index=True)
    meca_aid_id = Column(Integer, ForeignKey("meca_aids.id"), nullable=False, index=True)
    step_number = Column(Integer, nullable=False)
    title = Column(String, nullable=True)
    instruction = Column(Text, nullable=False)
    image_url = Column(String, nullable=True)
    warning_text = Column(Text, nullable=True)
    tip_text = Column(Text, nullable=True)

    def __repr__(self):
        return f"<MecaAidStep(meca_aid_id={self.meca_aid_id}, step={self.step_number})>"


class AppSetting(Base):
    __tablename__ = "app_settings"

    id = Column(Integer, primary_key=True, index=True)
    setting_key = Column(String, unique=True, nullable=False)
    setting_value = Column(Text, nullable=True)
