"""
Document fill module configuration.

Centralizes configuration for standalone usage. Defaults come from the
application settings.
"""

from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field

from shared.utils.config import settings


@dataclass
class FillConfig:
    """
    Configuration for the document fill module.

    Makes the module fully configurable for standalone usage.
    """

    # Path configuration
    project_root: Path = field(default_factory=Path.cwd)
    templates_dir: Optional[Path] = None
    output_dir: Optional[Path] = None

    # Output naming
    file_name_pattern: str = field(default_factory=lambda: settings.DEFAULT_FILE_NAME_PATTERN)
    roster_file_name_pattern: str = field(default_factory=lambda: settings.ROSTER_FILE_NAME_PATTERN)
    date_format: str = "%Y-%m-%d"

    # Batch settings
    job_retention_seconds: int = 86400  # 24 hours
    stop_on_first_error: bool = False

    # Template handling
    validate_templates: bool = True
    check_document_hash: bool = True

    def __post_init__(self):
        """Initialize default paths if not provided."""
        self.project_root = Path(self.project_root)

        if self.templates_dir is None:
            self.templates_dir = self.project_root / "config" / "document_fill" / "templates"

        if self.output_dir is None:
            self.output_dir = self.project_root / settings.OUTPUT_DIR

        self.templates_dir = Path(self.templates_dir)
        self.output_dir = Path(self.output_dir)


# Global configuration instance
_config_instance: Optional[FillConfig] = None


def get_fill_config() -> FillConfig:
    """
    Get global fill config instance.

    Returns:
        FillConfig instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = FillConfig()
    return _config_instance


def set_fill_config(config: FillConfig) -> None:
    """
    Set global fill config instance.

    Args:
        config: FillConfig instance
    """
    global _config_instance
    _config_instance = config
