"""Model loader: reads every YAML model manifest under ``<root>/models``."""
from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Dict, Iterator

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from yaml import YAMLError

from core.exceptions import ModelLoadError

logger = logging.getLogger("stagehand.loaders")

FIELD_TYPES = {"int", "float", "str", "text", "bool", "date", "datetime", "json"}
_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ModelDefinition(BaseModel):
    name: str
    table: str | None = None
    primary_key: str = "id"
    fields: Dict[str, str] = Field(default_factory=dict)
    timestamps: bool = False

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("name")
    @classmethod
    def _name_identifier(cls, v: str) -> str:  # noqa: D401
        if not _IDENT_RE.match(v):
            raise ValueError("name must be an identifier")
        return v

    @field_validator("fields")
    @classmethod
    def _known_types(cls, v: Dict[str, str]) -> Dict[str, str]:  # noqa: D401
        unknown = sorted(t for t in v.values() if t not in FIELD_TYPES)
        if unknown:
            raise ValueError(f"unknown field types: {unknown}")
        return v

    @model_validator(mode="after")
    def _check_primary_key(self) -> "ModelDefinition":
        if self.fields and self.primary_key not in self.fields:
            raise ValueError(
                f"primary_key '{self.primary_key}' not among fields"
            )
        return self

    @property
    def table_name(self) -> str:
        return self.table or self.name


_registry_lock = threading.Lock()
_model_cache: Dict[Path, Dict[str, ModelDefinition]] = {}


def _iter_manifest_files(models_dir: Path) -> Iterator[Path]:
    for path in sorted(models_dir.iterdir()):
        if path.is_file() and path.suffix in (".yaml", ".yml"):
            yield path


def _load_manifest_file(path: Path) -> ModelDefinition:
    """Load a single model manifest.

    YAML with tab characters (a common accidental edit) is re-parsed with
    tabs replaced by two spaces before giving up.
    """
    raw_text = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(raw_text) or {}
    except YAMLError as e:
        if "\t" not in raw_text:
            raise ModelLoadError(f"Invalid model {path.name}: {e}") from e
        logger.warning("re-parsing model manifest tabs->spaces: %s", path.name)
        try:
            data = yaml.safe_load(raw_text.replace("\t", "  ")) or {}
        except YAMLError as e2:
            raise ModelLoadError(f"Invalid model {path.name}: {e2}") from e2
    if not isinstance(data, dict):
        raise ModelLoadError(f"Invalid model {path.name}: not a mapping")
    data.setdefault("name", path.stem)
    try:
        return ModelDefinition(**data)
    except Exception as e:  # noqa: BLE001
        raise ModelLoadError(f"Invalid model {path.name}: {e}") from e


class ModelLoader:
    """Capability loader for data models."""

    def __init__(self, root: str | Path, subdir: str = "models") -> None:
        self.root = Path(root)
        self.subdir = subdir

    @property
    def directory(self) -> Path:
        return (self.root / self.subdir).resolve()

    def load(self) -> Dict[str, ModelDefinition]:
        """Index models by name; cached per resolved directory."""
        models_dir = self.directory
        with _registry_lock:
            if models_dir in _model_cache:
                return _model_cache[models_dir]
            if not models_dir.is_dir():
                raise ModelLoadError(
                    f"Model directory not found: {models_dir}"
                )
            index: Dict[str, ModelDefinition] = {}
            for mf in _iter_manifest_files(models_dir):
                model = _load_manifest_file(mf)
                if model.name in index:
                    raise ModelLoadError(
                        f"Duplicate model name: {model.name}"
                    )
                index[model.name] = model
            _model_cache[models_dir] = index
            logger.debug("models loaded from %s: %s", models_dir, list(index))
            return index


def clear_model_cache(root: str | Path | None = None, subdir: str = "models") -> None:
    """Clear cached model indexes (all, or the one under ``root``)."""
    with _registry_lock:
        if root is None:
            _model_cache.clear()
        else:
            _model_cache.pop((Path(root) / subdir).resolve(), None)


__all__ = [
    "FIELD_TYPES",
    "ModelDefinition",
    "ModelLoader",
    "clear_model_cache",
]
