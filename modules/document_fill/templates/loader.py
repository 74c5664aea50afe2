"""
Template loader implementation.

Loads fill templates from YAML or JSON files. Keys may be snake_case or the
camelCase used by templates exported from the desktop application.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from modules.document_fill.config import get_fill_config
from modules.document_fill.core.exceptions import ConfigurationException, TemplateValidationException
from modules.document_fill.core.validation import ensure_valid_template
from modules.document_fill.models.template import Template
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

TEMPLATE_SUFFIXES = (".yaml", ".yml", ".json")

# Written even when defaulted, so a reloaded template keeps its identity
_IDENTITY_FIELDS = {"id", "document_type", "version", "created_at", "updated_at"}


def _format_errors(error: ValidationError) -> List[str]:
    issues = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        issues.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    return issues


class TemplateLoader:
    """
    Template loader.

    Parses template files into validated, immutable Template models.
    """

    def __init__(self, templates_dir: Optional[Path] = None, validate: Optional[bool] = None):
        """
        Initialize template loader.

        Args:
            templates_dir: Directory holding template files (optional)
            validate: Run template validation after parsing (defaults to config)
        """
        config = get_fill_config()

        if templates_dir is None:
            templates_dir = config.templates_dir
        if validate is None:
            validate = config.validate_templates

        self.templates_dir = Path(templates_dir)
        self.validate = validate

        logger.info(f"Initialized TemplateLoader at {self.templates_dir}")

    def parse(self, data: Dict[str, Any], source: str = "<dict>") -> Template:
        """
        Build a Template from a plain dictionary.

        Raises:
            TemplateValidationException: If the data does not describe a valid template
        """
        if not isinstance(data, dict):
            raise TemplateValidationException(f"Template {source} must be a mapping", [])

        try:
            template = Template.model_validate(data)
        except ValidationError as e:
            issues = _format_errors(e)
            raise TemplateValidationException(
                f"Invalid template {source}: {issues[0] if issues else e}", issues
            )

        if self.validate:
            ensure_valid_template(template)
        return template

    def load_file(self, path: Union[str, Path]) -> Template:
        """
        Load one template file.

        Raises:
            ConfigurationException: If the file is missing or not parsable
            TemplateValidationException: If its content is not a valid template
        """
        path = Path(path)
        if not path.is_absolute() and not path.exists():
            path = self.templates_dir / path

        if not path.exists():
            raise ConfigurationException(f"Template file not found: {path}")
        if path.suffix.lower() not in TEMPLATE_SUFFIXES:
            raise ConfigurationException(f"Unsupported template file type: {path.suffix}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.suffix.lower() == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationException(f"Invalid template file {path}: {str(e)}")
        except OSError as e:
            raise ConfigurationException(f"Failed to read template {path}: {str(e)}")

        if not data:
            raise ConfigurationException(f"Empty template file: {path}")

        template = self.parse(data, source=str(path))
        logger.debug(f"Loaded template '{template.id}' from {path}")
        return template

    def load_all(self) -> List[Template]:
        """Load every template file in ``templates_dir``; invalid files are logged and skipped."""
        if not self.templates_dir.exists():
            logger.warning(f"Templates directory does not exist: {self.templates_dir}")
            return []

        templates = []
        for path in sorted(self.templates_dir.iterdir()):
            if path.suffix.lower() not in TEMPLATE_SUFFIXES:
                continue
            try:
                templates.append(self.load_file(path))
            except (ConfigurationException, TemplateValidationException) as e:
                logger.error(f"Failed to load template from {path}: {str(e)}")

        logger.info(f"Loaded {len(templates)} templates from {self.templates_dir}")
        return templates

    def save_file(self, template: Template, path: Optional[Union[str, Path]] = None) -> Path:
        """
        Write ``template`` as YAML (or JSON for a ``.json`` path).

        Returns:
            Path written
        """
        path = Path(path) if path is not None else self.templates_dir / f"{template.id}.yaml"
        path.parent.mkdir(parents=True, exist_ok=True)

        # Unset keys stay out of the file; an explicit null default is kept
        data = template.model_dump(mode="json", by_alias=True, exclude_unset=True)
        data.update(template.model_dump(mode="json", by_alias=True, include=_IDENTITY_FIELDS))
        with open(path, "w", encoding="utf-8") as f:
            if path.suffix.lower() == ".json":
                json.dump(data, f, indent=2)
            else:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

        logger.info(f"✅ Saved template: {template.id} (v{template.version})")
        return path
