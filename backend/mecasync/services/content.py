"""Content repository: versioned modules and meca aids as the sync core reads them."""
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Type, Union

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from mecasync.database import storage_errors
from mecasync.exceptions import NotFoundError, ValidationError
from mecasync.models import (
    AppSetting,
    MecaAid,
    MecaAidCategory,
    MecaAidStep,
    Module,
    ModuleCategory,
)
from mecasync.timeutil import isoformat, next_timestamp

ContentItem = Union[Module, MecaAid]

ENTITY_MODELS: Dict[str, Type[ContentItem]] = {
    "module": Module,
    "meca_aid": MecaAid,
}

# Fields that version bookkeeping owns; callers may not set them directly
_RESERVED_FIELDS = {"id", "uuid", "version", "created_at", "updated_at"}


def _model_for(entity_type: str) -> Type[ContentItem]:
    try:
        return ENTITY_MODELS[entity_type]
    except KeyError:
        raise ValidationError(f"Unknown entity type: {entity_type}")


def _changed_since_filter(model, since: Optional[datetime]):
    conditions = [model.is_active.is_(True)]
    if since is not None:
        conditions.append(model.updated_at > since)
    return conditions


class ContentRepository:
    """Read and version-bump operations over the content tables."""

    @staticmethod
    def fetch_module(db: Session, uuid: str, downloadable_only: bool = False) -> Module:
        """
        Fetch an active module by its stable id.

        Raises:
            NotFoundError: If the module is absent, inactive, or (when
                downloadable_only is set) not downloadable
        """
        with storage_errors(db, "fetch module"):
            query = db.query(Module).filter(Module.uuid == uuid, Module.is_active.is_(True))
            if downloadable_only:
                query = query.filter(Module.is_downloadable.is_(True))
            module = query.first()

        if not module:
            message = "Module not found or not downloadable" if downloadable_only else "Module not found"
            raise NotFoundError(message)
        return module

    @staticmethod
    def fetch_meca_aid(db: Session, uuid: str) -> MecaAid:
        """Fetch an active meca aid by its stable id, or raise NotFoundError."""
        with storage_errors(db, "fetch meca aid"):
            aid = db.query(MecaAid).filter(MecaAid.uuid == uuid, MecaAid.is_active.is_(True)).first()

        if not aid:
            raise NotFoundError("Meca Aid not found")
        return aid

    @staticmethod
    def fetch_active_changed_since(
        db: Session,
        entity_type: str,
        since: Optional[datetime] = None,
    ) -> List[ContentItem]:
        """
        Fetch active items of one entity type changed after `since`.

        Args:
            db: Database session
            entity_type: "module" or "meca_aid"
            since: Exclusive lower bound on updated_at; None returns the whole active catalog

        Returns:
            Items ordered by updated_at, with their category eagerly loaded
        """
        model = _model_for(entity_type)
        with storage_errors(db, f"fetch changed {entity_type} rows"):
            return (
                db.query(model)
                .options(joinedload(model.category))
                .filter(*_changed_since_filter(model, since))
                .order_by(model.updated_at, model.id)
                .all()
            )

    @staticmethod
    def count_active_changed_since(db: Session, entity_type: str, since: Optional[datetime]) -> int:
        """Count-only variant of fetch_active_changed_since."""
        model = _model_for(entity_type)
        with storage_errors(db, f"count changed {entity_type} rows"):
            stmt = select(func.count(model.id)).where(*_changed_since_filter(model, since))
            return db.execute(stmt).scalar_one()

    @staticmethod
    def fetch_children_bulk(db: Session, parent_ids: List[int]) -> Dict[int, List[MecaAidStep]]:
        """
        Fetch the steps of many meca aids in a single query.

        Args:
            db: Database session
            parent_ids: Meca aid ids

        Returns:
            Steps grouped by meca_aid_id, each group ordered by step_number.
            Parents without steps are absent from the mapping.
        """
        if not parent_ids:
            return {}

        with storage_errors(db, "fetch meca aid steps"):
            steps = (
                db.query(MecaAidStep)
                .filter(MecaAidStep.meca_aid_id.in_(set(parent_ids)))
                .order_by(MecaAidStep.meca_aid_id, MecaAidStep.step_number)
                .all()
            )

        grouped = defaultdict(list)
        for step in steps:
            grouped[step.meca_aid_id].append(step)
        return dict(grouped)

    @staticmethod
    def fetch_categories(db: Session) -> Dict[str, list]:
        """Active module and meca aid categories, each list by sort_order."""
        with storage_errors(db, "fetch categories"):
            module_categories = (
                db.query(ModuleCategory)
                .filter(ModuleCategory.is_active.is_(True))
                .order_by(ModuleCategory.sort_order, ModuleCategory.id)
                .all()
            )
            meca_aid_categories = (
                db.query(MecaAidCategory)
                .filter(MecaAidCategory.is_active.is_(True))
                .order_by(MecaAidCategory.sort_order, MecaAidCategory.id)
                .all()
            )
        return {"module": module_categories, "meca_aid": meca_aid_categories}

    @staticmethod
    def fetch_settings_all(db: Session) -> Dict[str, Optional[str]]:
        with storage_errors(db, "fetch app settings"):
            rows = db.query(AppSetting).all()
        return {row.setting_key: row.setting_value for row in rows}

    @staticmethod
    def update_content(db: Session, item: ContentItem, **fields) -> ContentItem:
        """
        Apply field changes and bump the item's version.

        The version is incremented in SQL (`version = version + 1`) so two
        concurrent updates each count once. updated_at is only guaranteed
        strictly later than the value this session loaded; a concurrent
        writer in another session can leave it equal to or earlier than
        the stored one.

        Args:
            db: Database session
            item: Module or MecaAid to update
            **fields: Column values to set

        Returns:
            The refreshed item
        """
        model = type(item)
        for key, value in fields.items():
            if key in _RESERVED_FIELDS or not hasattr(model, key):
                raise ValidationError(f"Field '{key}' cannot be updated on {model.__tablename__}")
            setattr(item, key, value)

        item.updated_at = next_timestamp(item.updated_at)
        item.version = model.version + 1

        with storage_errors(db, f"update {model.__tablename__} {item.uuid}"):
            db.commit()
            db.refresh(item)

        logger.info(f"Updated {model.__tablename__} {item.uuid} to version {item.version}")
        return item

    @staticmethod
    def deactivate(db: Session, item: ContentItem) -> ContentItem:
        """Soft-delete an item. The row stays, only is_active changes."""
        return ContentRepository.update_content(db, item, is_active=False)


def serialize_category(category) -> Dict:
    return {
        "id": category.id,
        "name": category.name,
        "sortOrder": category.sort_order,
    }


def serialize_step(step: MecaAidStep) -> Dict:
    return {
        "id": step.id,
        "stepNumber": step.step_number,
        "title": step.title,
        "instruction": step.instruction,
        "imageUrl": step.image_url,
        "warningText": step.warning_text,
        "tipText": step.tip_text,
    }


def serialize_module(module: Module) -> Dict:
    return {
        "id": module.id,
        "uuid": module.uuid,
        "categoryId": module.category_id,
        "categoryName": module.category.name if module.category else None,
        "title": module.title,
        "description": module.description,
        "content": module.content,
        "thumbnailUrl": module.thumbnail_url,
        "isDownloadable": module.is_downloadable,
        "priority": module.priority,
        "version": module.version,
        "updatedAt": isoformat(module.updated_at),
    }


def serialize_meca_aid(aid: MecaAid, steps: List[MecaAidStep]) -> Dict:
    return {
        "id": aid.id,
        "uuid": aid.uuid,
        "categoryId": aid.category_id,
        "categoryName": aid.category.name if aid.category else None,
        "title": aid.title,
        "problemDescription": aid.problem_description,
        "symptoms": aid.symptoms,
        "causes": aid.causes,
        "solutions": aid.solutions,
        "toolsRequired": aid.tools_required,
        "difficultyLevel": aid.difficulty_level,
        "estimatedTime": aid.estimated_time,
        "version": aid.version,
        "updatedAt": isoformat(aid.updated_at),
        "steps": [serialize_step(step) for step in steps],
    }
