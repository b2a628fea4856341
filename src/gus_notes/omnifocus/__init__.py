"""OmniFocus block configuration and task listing parsers."""

from .sources import (
    BlockConfig,
    Inbox,
    Project,
    Tag,
    TaskSource,
    parse_block_config,
    parse_source,
    source_label,
)
from .tasks import OmniFocusTask, parse_task_output, resolve_project, resolve_tag

__all__ = [
    "BlockConfig",
    "Inbox",
    "OmniFocusTask",
    "Project",
    "Tag",
    "TaskSource",
    "parse_block_config",
    "parse_source",
    "parse_task_output",
    "resolve_project",
    "resolve_tag",
    "source_label",
]
