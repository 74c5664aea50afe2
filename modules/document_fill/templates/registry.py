"""
Template store implementations.

Templates are immutable; saving a revised template replaces the current
version and keeps the earlier ones in history.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from modules.document_fill.core.exceptions import TemplateNotFoundException
from modules.document_fill.models.template import Template
from modules.document_fill.templates.loader import TemplateLoader
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


class ITemplateStore(ABC):
    """
    Abstract interface for template storage.

    Allows swapping storage backends without changing engine code.
    """

    @abstractmethod
    async def save_template(self, template: Template) -> Template:
        """
        Store a template as the current version for its id.

        Returns:
            The stored template
        """
        pass

    @abstractmethod
    async def get_template(self, template_id: str, version: Optional[int] = None) -> Optional[Template]:
        """
        Get a template by id.

        Args:
            template_id: Template identifier
            version: Specific version (current when omitted)

        Returns:
            Template or None if not found
        """
        pass

    @abstractmethod
    async def list_templates(self, filters: Optional[Dict[str, Any]] = None) -> List[Template]:
        """
        List current template versions.

        Args:
            filters: Optional filters
                - document_type: pdf, docx or xlsx

        Returns:
            List of Template
        """
        pass

    @abstractmethod
    async def delete_template(self, template_id: str) -> bool:
        """
        Delete a template and its history.

        Returns:
            True if deleted
        """
        pass

    async def require_template(self, template_id: str, version: Optional[int] = None) -> Template:
        """
        Like ``get_template`` but raises when missing.

        Raises:
            TemplateNotFoundException: If no such template (or version) exists
        """
        template = await self.get_template(template_id, version)
        if template is None:
            suffix = f" v{version}" if version is not None else ""
            raise TemplateNotFoundException(f"Template not found: {template_id}{suffix}")
        return template

    async def template_exists(self, template_id: str) -> bool:
        return await self.get_template(template_id) is not None


class InMemoryTemplateStore(ITemplateStore):
    """Dictionary-backed template store with version history."""

    def __init__(self, templates: Optional[List[Template]] = None):
        self._current: Dict[str, Template] = {}
        self._history: Dict[str, Dict[int, Template]] = {}
        for template in templates or ():
            self._put(template)

    def _put(self, template: Template) -> Template:
        self._history.setdefault(template.id, {})[template.version] = template
        current = self._current.get(template.id)
        if current is None or template.version >= current.version:
            self._current[template.id] = template
        return template

    async def save_template(self, template: Template) -> Template:
        self._put(template)
        logger.info(f"✅ Registered template: {template.id} (v{template.version})")
        return template

    async def get_template(self, template_id: str, version: Optional[int] = None) -> Optional[Template]:
        if version is None:
            return self._current.get(template_id)
        return self._history.get(template_id, {}).get(version)

    async def list_templates(self, filters: Optional[Dict[str, Any]] = None) -> List[Template]:
        templates = list(self._current.values())

        if filters and "document_type" in filters:
            document_type = str(filters["document_type"]).lower()
            templates = [t for t in templates if t.document_type == document_type]

        return sorted(templates, key=lambda t: t.name or t.id)

    async def delete_template(self, template_id: str) -> bool:
        if template_id not in self._current:
            return False
        del self._current[template_id]
        self._history.pop(template_id, None)
        logger.info(f"✅ Deleted template: {template_id}")
        return True

    def versions(self, template_id: str) -> List[int]:
        return sorted(self._history.get(template_id, {}))


class FileTemplateStore(InMemoryTemplateStore):
    """
    Template store backed by a directory of YAML/JSON files.

    Files are read once on construction; saves write ``<id>.yaml``.
    """

    def __init__(self, templates_dir: Optional[Path] = None, loader: Optional[TemplateLoader] = None):
        self.loader = loader or TemplateLoader(templates_dir)
        super().__init__(self.loader.load_all())
        logger.info(f"Initialized FileTemplateStore with {len(self._current)} templates")

    async def save_template(self, template: Template) -> Template:
        self.loader.save_file(template)
        return await super().save_template(template)

    async def delete_template(self, template_id: str) -> bool:
        deleted = await super().delete_template(template_id)
        for suffix in (".yaml", ".yml", ".json"):
            path = self.loader.templates_dir / f"{template_id}{suffix}"
            if path.exists():
                path.unlink()
                deleted = True
        return deleted

    def reload(self) -> None:
        """Reload all templates from disk."""
        self._current.clear()
        self._history.clear()
        for template in self.loader.load_all():
            self._put(template)
        logger.info(f"Reloaded {len(self._current)} templates")
