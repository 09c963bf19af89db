"""
Interface of the project persistence collaborator.

Hosted storage (database rows plus an object bucket for wireframe images) lives
outside this package; callers pass in any object satisfying ``ProjectStore``.
"""

from typing import Any, Dict, List, Optional, Protocol

from wireframe_react.models import GeneratedComponent, ProjectRecord


class ProjectStore(Protocol):
    """CRUD over project records plus image upload."""

    def list_projects(self, user_id: str) -> List[ProjectRecord]:
        ...

    def get_project(self, project_id: str) -> ProjectRecord:
        ...

    def create_project(self, record: ProjectRecord) -> ProjectRecord:
        ...

    def update_project(self, project_id: str, updates: Dict[str, Any]) -> ProjectRecord:
        ...

    def delete_project(self, project_id: str) -> bool:
        ...

    def upload_image(self, data: bytes, path: str) -> str:
        """Store image bytes and return their public URL."""
        ...


def persist_generation(
    store: ProjectStore,
    generated: GeneratedComponent,
    description: str,
    image: bytes,
    image_path: str,
    title: Optional[str] = None,
) -> ProjectRecord:
    """
    Upload the wireframe and create a project record for a generation result.

    Args:
        store: Persistence collaborator.
        generated: Generation result whose source becomes the project code.
        description: Description the user submitted.
        image: Wireframe image bytes.
        image_path: Object path for the upload.
        title: Optional project title.

    Returns:
        The record as returned by the store.
    """
    image_url = store.upload_image(image, image_path)
    record = ProjectRecord.from_generation(generated, description, image_url, title=title)
    return store.create_project(record)
