"""Prompt Version Service - versioned prompt lifecycle with a single active version per model"""
import logging
import threading
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from promptloop.models.model import Model
from promptloop.models.model_version import ModelVersion
from promptloop.services.exceptions import EntityNotFoundError

logger = logging.getLogger(__name__)

_model_locks: Dict[int, threading.RLock] = {}
_registry_lock = threading.Lock()

def model_lock(model_id: int) -> threading.RLock:
    """Process-wide lock serializing version/A-B mutations of one model"""
    with _registry_lock:
        lock = _model_locks.get(model_id)
        if lock is None:
            lock = threading.RLock()
            _model_locks[model_id] = lock
        return lock

def _version_number(version: ModelVersion) -> int:
    try:
        return int(version.version)
    except (TypeError, ValueError):
        return 0

class PromptVersionService:
    """Service for creating, listing and activating prompt versions"""

    def __init__(self, db: Session):
        self.db = db

    def _get_model(self, model_id: int) -> Model:
        model = self.db.query(Model).filter(Model.id == model_id).first()
        if not model:
            raise EntityNotFoundError("Model", model_id)
        return model

    def list_versions(self, model_id: int) -> List[ModelVersion]:
        """All live versions of a model, newest first"""
        versions = self.db.query(ModelVersion).filter(
            ModelVersion.model_id == model_id,
            ModelVersion.deleted_at.is_(None)
        ).all()
        return sorted(versions, key=_version_number, reverse=True)

    def get_active_version(self, model_id: int) -> Optional[ModelVersion]:
        return self.db.query(ModelVersion).filter(
            ModelVersion.model_id == model_id,
            ModelVersion.active_version.is_(True),
            ModelVersion.deleted_at.is_(None)
        ).first()

    def get_version(self, model_id: int, version: str) -> ModelVersion:
        found = self.db.query(ModelVersion).filter(
            ModelVersion.model_id == model_id,
            ModelVersion.version == str(version),
            ModelVersion.deleted_at.is_(None)
        ).first()
        if not found:
            raise EntityNotFoundError("ModelVersion", f"{model_id}-{version}")
        return found

    def has_versions(self, model_id: int) -> bool:
        return self.db.query(ModelVersion.id).filter(ModelVersion.model_id == model_id).first() is not None

    def next_version_number(self, model_id: int) -> int:
        versions = self.db.query(ModelVersion).filter(ModelVersion.model_id == model_id).all()
        if not versions:
            return 1
        return max(_version_number(v) for v in versions) + 1

    def active_version_key(self, model_id: int) -> Optional[str]:
        """Denormalized `{model_id}-{version}` key of the active version"""
        active = self.get_active_version(model_id)
        return active.version_key if active else None

    def _deactivate_all(self, model_id: int) -> None:
        self.db.query(ModelVersion).filter(
            ModelVersion.model_id == model_id,
            ModelVersion.active_version.is_(True)
        ).update({ModelVersion.active_version: False}, synchronize_session="fetch")
        # Flush the unset before any new active row so the partial unique index holds
        self.db.flush()

    def create_version(self, model_id: int, prompt: str, activate: bool = False) -> ModelVersion:
        """
        Create the next numbered version of a model's prompt.

        When `activate` is set, every prior version is deactivated in the same
        transaction before the new one is marked active.
        """
        with model_lock(model_id):
            for attempt in range(2):
                try:
                    if activate:
                        self._deactivate_all(model_id)
                    version = ModelVersion(
                        model_id=model_id,
                        version=str(self.next_version_number(model_id)),
                        parameters={"prompt": prompt},
                        active_version=activate,
                    )
                    self.db.add(version)
                    self.db.commit()
                    self.db.refresh(version)
                    logger.info(f"Created prompt version {version.version_key} (active={activate})")
                    return version
                except IntegrityError:
                    # Another process activated a version concurrently
                    self.db.rollback()
                    if attempt:
                        raise
                    logger.warning(f"Active version conflict for model {model_id}, retrying")

    def seed_initial_version(self, model_id: int, prompt: Optional[str]) -> Optional[ModelVersion]:
        """Create version "1" (active) when the model has no versions yet"""
        if not prompt:
            return None
        with model_lock(model_id):
            if self.has_versions(model_id):
                return None
            return self.create_version(model_id, prompt, activate=True)

    def release_version(self, model_id: int, version: str) -> ModelVersion:
        """Make an existing version the single active one and serve its prompt"""
        model = self._get_model(model_id)
        with model_lock(model_id):
            target = self.get_version(model_id, version)
            self._deactivate_all(model_id)
            target.active_version = True
            prompt = target.prompt
            if prompt:
                model.parameters = {**(model.parameters or {}), "prompt": prompt}
            self.db.commit()
            self.db.refresh(target)
        logger.info(f"Released prompt version {target.version_key}")
        return target

    def use_optimized_prompt(self, model_id: int, new_prompt: str) -> ModelVersion:
        """Deploy a prompt: new active version plus the model's served prompt"""
        if not new_prompt or not new_prompt.strip():
            raise ValueError("prompt must not be empty")
        model = self._get_model(model_id)
        with model_lock(model_id):
            version = self.create_version(model_id, new_prompt, activate=True)
            model.parameters = {**(model.parameters or {}), "prompt": new_prompt}
            self.db.commit()
        return version
