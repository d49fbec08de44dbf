"""
Workspace store: the client's live copy of one user's notebook.

Holds a mirror per table (projects, analyses, datasets, sections) plus the
project/analysis selection. Analyses and datasets always belong to the
selected project, sections to the selected analysis.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from radnotebook.workspace.gateway import GatewayError
from radnotebook.workspace.mirror import OptimisticCollection, Record
from radnotebook.workspace.notifications import Notifier

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_NAME = "Untitled Project"
DEFAULT_ANALYSIS_NAME = "New Analysis"
DEFAULT_DATASET_NAME = "Untitled Dataset"
DEFAULT_SECTION_TITLE = "New Section"


class WorkspaceStore:
    def __init__(self, gateway: Any, notifier: Optional[Notifier] = None):
        self.gateway = gateway
        self.notifier = notifier or Notifier()
        self.projects = OptimisticCollection("projects", gateway, self.notifier, descending=True)
        self.analyses = OptimisticCollection("analyses", gateway, self.notifier)
        self.datasets = OptimisticCollection("datasets", gateway, self.notifier)
        self.sections = OptimisticCollection("sections", gateway, self.notifier, sort_field="section_order")
        self.selected_project_id: Optional[str] = None
        self.selected_analysis_id: Optional[str] = None

    @property
    def collections(self) -> List[OptimisticCollection]:
        return [self.projects, self.analyses, self.datasets, self.sections]

    @property
    def selected_project(self) -> Optional[Record]:
        return self.projects.get(self.selected_project_id)

    @property
    def selected_analysis(self) -> Optional[Record]:
        return self.analyses.get(self.selected_analysis_id)

    # ---- loading and selection ----

    async def _fetch(self, table: str, action: str, **filters: Any) -> Optional[List[Record]]:
        try:
            return await asyncio.to_thread(self.gateway.list, table, **filters)
        except GatewayError as e:
            self.notifier.failure(action, e.message)
            return None

    async def load(self) -> bool:
        """Fetch the user's projects; nothing below is loaded until a project is selected."""
        rows = await self._fetch("projects", "load projects")
        if rows is None:
            return False
        self.projects.replace_all(rows)
        return True

    async def select_project(self, project_id: Optional[str]) -> None:
        self.selected_project_id = project_id
        self.selected_analysis_id = None
        self.sections.clear()
        if project_id is None:
            self.analyses.clear()
            self.datasets.clear()
            return

        analyses = await self._fetch("analyses", "load analyses", project_id=project_id)
        if self.selected_project_id != project_id:
            logger.debug("Discarding analyses for %s, selection moved on", project_id)
            return
        self.analyses.replace_all(analyses or [])

        datasets = await self._fetch("datasets", "load datasets", project_id=project_id)
        if self.selected_project_id != project_id:
            return
        self.datasets.replace_all(datasets or [])

    async def select_analysis(self, analysis_id: Optional[str]) -> None:
        self.selected_analysis_id = analysis_id
        if analysis_id is None:
            self.sections.clear()
            return

        sections = await self._fetch("sections", "load sections", analysis_id=analysis_id)
        if self.selected_analysis_id != analysis_id:
            logger.debug("Discarding sections for %s, selection moved on", analysis_id)
            return
        self.sections.replace_all(sections or [])

    # ---- projects ----

    def create_project(self, name: str = DEFAULT_PROJECT_NAME, description: Optional[str] = None) -> asyncio.Task:
        values: Dict[str, Any] = {"name": name or DEFAULT_PROJECT_NAME}
        if description is not None:
            values["description"] = description

        async def select(record):
            await self.select_project(record["id"])

        return self.projects.create(values, on_success=select)

    def update_project(self, project_id: str, **changes: Any) -> asyncio.Task:
        return self.projects.update(project_id, changes)

    def delete_project(self, project_id: str) -> asyncio.Task:
        if project_id != self.selected_project_id:
            return self.projects.delete(project_id)

        saved = (
            self.selected_project_id,
            self.selected_analysis_id,
            self.analyses.snapshot(),
            self.datasets.snapshot(),
            self.sections.snapshot(),
        )
        self.selected_project_id = None
        self.selected_analysis_id = None
        self.analyses.clear()
        self.datasets.clear()
        self.sections.clear()

        def restore():
            self.selected_project_id, self.selected_analysis_id = saved[0], saved[1]
            self.analyses.restore(saved[2])
            self.datasets.restore(saved[3])
            self.sections.restore(saved[4])

        return self.projects.delete(project_id, on_failure=restore)

    # ---- analyses ----

    def create_analysis(self, name: str = DEFAULT_ANALYSIS_NAME, project_id: Optional[str] = None) -> asyncio.Task:
        project_id = project_id or self.selected_project_id
        if project_id is None:
            raise ValueError("No project selected")

        async def select(record):
            if self.selected_project_id == record.get("project_id"):
                await self.select_analysis(record["id"])

        return self.analyses.create({"project_id": project_id, "name": name or DEFAULT_ANALYSIS_NAME}, on_success=select)

    def update_analysis(self, analysis_id: str, **changes: Any) -> asyncio.Task:
        return self.analyses.update(analysis_id, changes)

    def delete_analysis(self, analysis_id: str) -> asyncio.Task:
        if analysis_id != self.selected_analysis_id:
            return self.analyses.delete(analysis_id)

        sections = self.sections.snapshot()
        self.selected_analysis_id = None
        self.sections.clear()

        def restore():
            self.selected_analysis_id = analysis_id
            self.sections.restore(sections)

        return self.analyses.delete(analysis_id, on_failure=restore)

    # ---- datasets ----

    def create_dataset(
        self,
        name: str = DEFAULT_DATASET_NAME,
        description: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> asyncio.Task:
        project_id = project_id or self.selected_project_id
        if project_id is None:
            raise ValueError("No project selected")
        values: Dict[str, Any] = {"project_id": project_id, "name": name or DEFAULT_DATASET_NAME}
        if description is not None:
            values["description"] = description
        return self.datasets.create(values)

    def update_dataset(self, dataset_id: str, **changes: Any) -> asyncio.Task:
        return self.datasets.update(dataset_id, changes)

    def delete_dataset(self, dataset_id: str) -> asyncio.Task:
        return self.datasets.delete(dataset_id)

    # ---- sections ----

    def next_section_order(self) -> int:
        orders = [s.get("section_order") for s in self.sections if s.get("section_order") is not None]
        return max(orders) + 1 if orders else 0

    def create_section(self, title: str = DEFAULT_SECTION_TITLE, content: str = "") -> asyncio.Task:
        if self.selected_analysis_id is None:
            raise ValueError("No analysis selected")
        return self.sections.create({
            "analysis_id": self.selected_analysis_id,
            "title": title or DEFAULT_SECTION_TITLE,
            "content": content,
            "section_order": self.next_section_order(),
        })

    def update_section(self, section_id: str, **changes: Any) -> asyncio.Task:
        return self.sections.update(section_id, changes)

    def delete_section(self, section_id: str) -> asyncio.Task:
        return self.sections.delete(section_id)

    def reorder_sections(self, ordered_ids: List[str]) -> asyncio.Task:
        return self.sections.reorder(ordered_ids, "section_order")

    def aggregated_text(self) -> str:
        """All sections of the selected analysis as one report body, in display order."""
        blocks = []
        for section in self.sections:
            title = section.get("title") or ""
            content = section.get("content") or ""
            blocks.append(f"{title}\n{content}" if title else content)
        return "\n\n".join(blocks)

    # ---- bookkeeping ----

    @property
    def pending(self) -> int:
        return sum(len(c.pending) for c in self.collections)

    @property
    def idle(self) -> bool:
        return self.pending == 0

    async def wait_idle(self) -> None:
        """Wait until every in-flight mutation (including ones spawned meanwhile) has settled."""
        while True:
            tasks = [t for c in self.collections for t in c.pending]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    def reset(self) -> None:
        for collection in self.collections:
            collection.clear()
        self.selected_project_id = None
        self.selected_analysis_id = None
        self.notifier.clear()
