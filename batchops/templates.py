"""
Workshop templates used by bulk creation.

A template supplies default workshop fields and an optional set of task
templates whose due dates are relative to each workshop's start time.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class TaskTemplate(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    due_date: Optional[str] = None  # relative expression, e.g. "+7 days"
    order_index: int = 0


class WorkshopTemplate(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    is_default: bool = False
    defaults: Dict[str, Any] = Field(default_factory=dict)
    task_templates: List[TaskTemplate] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def _builtin_templates() -> List[WorkshopTemplate]:
    return [
        WorkshopTemplate(
            id="template_1",
            name="Programming Workshop",
            description="Standard programming workshop template",
            category="Programming",
            is_default=True,
            defaults={"description": "A hands-on programming workshop", "max_participants": 30},
            task_templates=[
                TaskTemplate(
                    id="task_1",
                    title="Pre-workshop Setup",
                    description="Install required software and dependencies",
                    due_date="-3 days",
                    order_index=1,
                ),
                TaskTemplate(
                    id="task_2",
                    title="Workshop Completion",
                    description="Submit your completed project",
                    due_date="+1 day",
                    order_index=2,
                ),
            ],
        ),
        WorkshopTemplate(
            id="template_2",
            name="Research Workshop",
            description="Academic research workshop template",
            category="Research",
            is_default=True,
            defaults={"description": "Academic research methodology workshop", "max_participants": 25},
            task_templates=[
                TaskTemplate(
                    id="task_1",
                    title="Literature Review",
                    description="Prepare initial literature review",
                    due_date="-7 days",
                    order_index=1,
                ),
                TaskTemplate(
                    id="task_2",
                    title="Research Proposal",
                    description="Submit research proposal draft",
                    due_date="+5 days",
                    order_index=2,
                ),
            ],
        ),
    ]


class TemplateCatalog:
    """In-process template lookup seeded with the built-in templates."""

    def __init__(self, templates: Optional[List[WorkshopTemplate]] = None, include_builtin: bool = True):
        self._templates: Dict[str, WorkshopTemplate] = {}
        for template in (_builtin_templates() if include_builtin else []) + list(templates or []):
            self._templates[template.id] = template

    def list_templates(self) -> List[WorkshopTemplate]:
        return list(self._templates.values())

    def get(self, template_id: str) -> Optional[WorkshopTemplate]:
        return self._templates.get(template_id)

    def register(
        self,
        name: str,
        defaults: Optional[Dict[str, Any]] = None,
        task_templates: Optional[List[TaskTemplate]] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> WorkshopTemplate:
        template = WorkshopTemplate(
            id=f"template_{uuid.uuid4().hex[:8]}",
            name=name,
            description=description,
            category=category,
            defaults=dict(defaults or {}),
            task_templates=list(task_templates or []),
        )
        self._templates[template.id] = template
        return template
