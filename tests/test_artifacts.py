"""
Tests for artifact storage, project export and the persistence helper.
"""

import json

import pytest

from wireframe_react.io.artifacts import DEFAULT_APP_CSS, ArtifactManager, project_files
from wireframe_react.io.project_store import persist_generation
from wireframe_react.models import GeneratedComponent, ProjectRecord


@pytest.fixture
def generated():
    return GeneratedComponent(
        request_id="req-1",
        source="function App() {\n  return <div>Hi</div>;\n}",
        raw_content="```jsx\nfunction App() {\n  return <div>Hi</div>;\n}\n```",
        css_content=".hero { color: red; }",
        model_name="model/a",
        prompt_tokens=10,
        completion_tokens=5,
    )


def test_create_request_directory(tmp_path):
    manager = ArtifactManager(tmp_path)

    request_dir = manager.create_request_directory("req-1")

    assert request_dir == tmp_path / "req-1"
    assert (request_dir / "screenshots").is_dir()
    assert (request_dir / "logs").is_dir()


def test_save_and_load_source(tmp_path):
    manager = ArtifactManager(tmp_path)

    path = manager.save_source("req-1", "function App() {}")

    assert path == tmp_path / "req-1" / "App.jsx"
    assert manager.load_source("req-1") == "function App() {}"
    with pytest.raises(FileNotFoundError):
        manager.load_source("missing")


def test_save_document(tmp_path):
    path = ArtifactManager(tmp_path).save_document("req-1", "<html></html>")
    assert path.name == "preview.html"
    assert path.read_text(encoding="utf-8") == "<html></html>"


def test_save_generation_log(tmp_path, generated):
    path = ArtifactManager(tmp_path).save_generation_log(generated)

    log = json.loads(path.read_text(encoding="utf-8"))
    assert log["request_id"] == "req-1"
    assert log["model"] == "model/a"
    assert log["prompt_tokens"] == 10


def test_project_files(generated):
    """Test the files of an exported Vite project."""
    files = project_files(generated, title="Pricing")

    assert set(files) == {
        "index.html",
        "package.json",
        "tailwind.config.js",
        "postcss.config.js",
        "README.md",
        "src/App.tsx",
        "src/main.tsx",
        "src/App.css",
        "src/index.css",
    }
    assert "<title>Pricing</title>" in files["index.html"]
    assert files["src/App.tsx"].startswith("import React from 'react';")
    assert files["src/App.tsx"].rstrip().endswith("export default App;")
    assert files["src/App.css"] == ".hero { color: red; }\n"
    assert json.loads(files["package.json"])["dependencies"]["react"] == "^18.2.0"


def test_project_files_default_css(generated):
    files = project_files(generated.model_copy(update={"css_content": ""}))
    assert files["src/App.css"] == DEFAULT_APP_CSS


def test_export_project(tmp_path, generated):
    project_dir = ArtifactManager(tmp_path).export_project(generated)

    assert project_dir == tmp_path / "req-1" / "project"
    assert (project_dir / "src" / "App.tsx").exists()
    assert (project_dir / "package.json").exists()


def test_export_project_requires_app(tmp_path, generated):
    with pytest.raises(ValueError):
        ArtifactManager(tmp_path).export_project(generated.model_copy(update={"source": "const x = 1;"}))


class InMemoryStore:
    """Persistence collaborator keeping everything in dictionaries."""

    def __init__(self):
        self.projects = {}
        self.images = {}

    def list_projects(self, user_id):
        return list(self.projects.values())

    def get_project(self, project_id):
        return self.projects[project_id]

    def create_project(self, record):
        record = record.model_copy(update={"id": f"p{len(self.projects) + 1}"})
        self.projects[record.id] = record
        return record

    def update_project(self, project_id, updates):
        self.projects[project_id] = self.projects[project_id].model_copy(update=updates)
        return self.projects[project_id]

    def delete_project(self, project_id):
        return self.projects.pop(project_id, None) is not None

    def upload_image(self, data, path):
        self.images[path] = data
        return f"https://storage.test/{path}"


def test_persist_generation(generated):
    """Test that the image is uploaded and the code stored on the record."""
    store = InMemoryStore()

    record = persist_generation(store, generated, "A pricing page", b"png-bytes", "wireframes/req-1.png", title="Pricing")

    assert isinstance(record, ProjectRecord)
    assert record.id == "p1"
    assert record.title == "Pricing"
    assert record.code == generated.source
    assert record.model == "model/a"
    assert record.image_url == "https://storage.test/wireframes/req-1.png"
    assert store.images == {"wireframes/req-1.png": b"png-bytes"}
