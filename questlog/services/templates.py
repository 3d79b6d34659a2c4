"""Saved task templates, persisted in the local key-value store."""

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from questlog.core.errors import RecordNotFoundError, TaskValidationError
from questlog.core.kv_store import KeyValueStore, StorageKeys
from questlog.core.logging import span
from questlog.core.timeutil import now_iso
from questlog.domain.create_models import TaskCreate, clean_tags, validate_input
from questlog.domain.task import Subtask, Task
from questlog.domain.template import TaskTemplate, TemplateTask


if TYPE_CHECKING:
    from questlog.services.task_manager import TaskManager


logger = logging.getLogger(__name__)


class TemplateLibrary:
    """CRUD over task templates plus instantiation through the engine."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def list_templates(self) -> list[TaskTemplate]:
        raw = await self._store.read(StorageKeys.TEMPLATES)
        templates: list[TaskTemplate] = []
        for item in raw if isinstance(raw, list) else []:
            try:
                templates.append(TaskTemplate.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping malformed template", extra={"error": str(e)})
        return templates

    async def _save(self, templates: list[TaskTemplate]) -> None:
        await self._store.write(StorageKeys.TEMPLATES, [t.to_record() for t in templates])

    async def get_template(self, template_id: str) -> TaskTemplate:
        for template in await self.list_templates():
            if template.id == template_id:
                return template
        raise RecordNotFoundError(f"Template {template_id} not found")

    async def save_template(
        self,
        name: str,
        task: TemplateTask | Task | dict[str, Any],
        *,
        category: str | None = None,
        tags: list[str] | None = None,
    ) -> TaskTemplate:
        """Save a new template from a task shape (an existing task or raw fields).

        Raises:
            TaskValidationError: If the name is empty or the task shape is invalid
        """
        with span("templates.save_template"):
            name = name.strip()
            if not name:
                raise TaskValidationError("Template name cannot be empty")

            if isinstance(task, Task):
                task = task.model_dump(include=set(TemplateTask.model_fields))
            try:
                shape = TemplateTask.model_validate(task)
            except ValidationError as e:
                raise TaskValidationError(f"Invalid template task: {e.errors()[0]['msg']}") from e

            template = TaskTemplate(
                name=name,
                task=shape,
                category=category.strip() if category and category.strip() else None,
                tags=clean_tags(tags or []),
            )
            templates = await self.list_templates()
            templates.append(template)
            await self._save(templates)
            logger.info("Template saved", extra={"template_id": template.id})
            return template

    async def update_template(self, template_id: str, updates: dict[str, Any]) -> TaskTemplate:
        templates = await self.list_templates()
        for i, template in enumerate(templates):
            if template.id == template_id:
                try:
                    templates[i] = TaskTemplate.model_validate({**template.model_dump(), **updates, "id": template_id})
                except ValidationError as e:
                    raise TaskValidationError(f"Invalid template update: {e.errors()[0]['msg']}") from e
                await self._save(templates)
                return templates[i]
        raise RecordNotFoundError(f"Template {template_id} not found")

    async def delete_template(self, template_id: str) -> None:
        templates = await self.list_templates()
        await self._save([t for t in templates if t.id != template_id])

    async def instantiate(self, template_id: str, manager: "TaskManager", **overrides: Any) -> Task:
        """Create a task from a template through the engine's normal creation path.

        Bumps the template's use count and last-used time once the task exists.
        """
        with span("templates.instantiate"):
            template = await self.get_template(template_id)
            fields = template.task.model_dump()
            fields["subtasks"] = [Subtask(title=s.title, completed=False) for s in template.task.subtasks]
            payload = validate_input(TaskCreate, {**fields, **overrides})

            task = await manager.add_task(payload)

            await self.update_template(
                template_id,
                {"use_count": template.use_count + 1, "last_used": now_iso()},
            )
            return task
