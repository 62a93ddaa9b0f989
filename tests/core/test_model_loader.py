from pathlib import Path
import textwrap

import pytest

from core.exceptions import LoaderError, ModelLoadError
from core.loaders import ModelLoader, clear_model_cache


def _write(file: Path, content: str):
    file.parent.mkdir(parents=True, exist_ok=True)
    file.write_text(textwrap.dedent(content), encoding="utf-8")


def test_load_models_index_by_name(tmp_path: Path):
    _write(
        tmp_path / "models" / "user.yaml",
        """
        table: users
        fields:
          id: int
          email: str
        """,
    )
    _write(
        tmp_path / "models" / "post.yml",
        """
        name: article
        primary_key: slug
        fields:
          slug: str
          body: text
        timestamps: true
        """,
    )
    (tmp_path / "models" / "README.md").write_text("ignored", encoding="utf-8")
    models = ModelLoader(tmp_path).load()
    assert set(models) == {"user", "article"}
    assert models["user"].table_name == "users"
    assert models["article"].table_name == "article"
    assert models["article"].timestamps is True


def test_results_cached_per_directory(tmp_path: Path):
    _write(tmp_path / "models" / "user.yaml", "fields: {id: int}\n")
    first = ModelLoader(tmp_path).load()
    _write(tmp_path / "models" / "extra.yaml", "fields: {id: int}\n")
    assert ModelLoader(tmp_path).load() is first
    clear_model_cache(tmp_path)
    assert set(ModelLoader(tmp_path).load()) == {"user", "extra"}


def test_missing_directory(tmp_path: Path):
    with pytest.raises(ModelLoadError, match="not found"):
        ModelLoader(tmp_path).load()


def test_duplicate_name(tmp_path: Path):
    _write(tmp_path / "models" / "a.yaml", "name: user\n")
    _write(tmp_path / "models" / "b.yaml", "name: user\n")
    with pytest.raises(ModelLoadError, match="Duplicate"):
        ModelLoader(tmp_path).load()


@pytest.mark.parametrize(
    "content",
    [
        "fields: {id: uuid}\n",  # unknown field type
        "fields: {email: str}\n",  # primary key not among fields
        "colour: red\n",  # unknown key
        "- just\n- a list\n",
        "fields: [unclosed\n",
    ],
)
def test_invalid_manifest(tmp_path: Path, content: str):
    _write(tmp_path / "models" / "bad.yaml", content)
    with pytest.raises(LoaderError) as exc:
        ModelLoader(tmp_path).load()
    assert exc.value.error_type == "model-load-failed"


def test_tabs_reparsed(tmp_path: Path):
    (tmp_path / "models").mkdir()
    (tmp_path / "models" / "tabbed.yaml").write_text(
        "fields:\n\tid: int\n", encoding="utf-8"
    )
    models = ModelLoader(tmp_path).load()
    assert models["tabbed"].fields == {"id": "int"}


def test_custom_subdir(tmp_path: Path):
    _write(tmp_path / "schema" / "user.yaml", "fields: {id: int}\n")
    loader = ModelLoader(tmp_path, "schema")
    assert loader.directory == (tmp_path / "schema").resolve()
    assert set(loader.load()) == {"user"}
