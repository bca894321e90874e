"""
Application options and project id discovery.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from shared.config import get_settings
from shared.logging import get_logger

logger = get_logger("project")


@dataclass
class AppOptions:
    """Caller-supplied options threaded through to verifiers and key sources."""
    project_id: Optional[str] = None
    http_proxy: Optional[str] = None
    http_timeout: Optional[float] = None
    http_client: Optional[httpx.AsyncClient] = None


async def find_project_id(options: Optional[AppOptions] = None) -> Optional[str]:
    """Resolve the project id from explicit options, then the environment."""
    if options is not None and options.project_id:
        return options.project_id

    project_id = get_settings().project_id
    if project_id:
        logger.debug("Project id resolved from environment", project_id=project_id)
        return project_id

    logger.debug("Project id could not be resolved")
    return None
