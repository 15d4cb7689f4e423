"""First-launch and CLI installation flags."""

import logging

from tallr.core.config import GlobalConfig
from tallr.core.models import CamelModel

logger = logging.getLogger(__name__)


class SetupStatus(CamelModel):
    is_first_launch: bool
    cli_installed: bool
    setup_completed: bool


def is_setup_completed(config: GlobalConfig) -> bool:
    try:
        return config.setup_marker.exists()
    except OSError:
        return False


def is_cli_installed(config: GlobalConfig) -> bool:
    return config.cli_install_path.exists()


def get_setup_status(config: GlobalConfig) -> SetupStatus:
    completed = is_setup_completed(config)
    return SetupStatus(
        is_first_launch=not completed,
        cli_installed=is_cli_installed(config),
        setup_completed=completed,
    )


def mark_setup_completed(config: GlobalConfig) -> None:
    """Create the marker file that ends the first-run experience.

    Raises:
        OSError: If the marker cannot be written
    """
    marker = config.setup_marker
    marker.parent.mkdir(parents=True, exist_ok=True)
    marker.write_text("")
    logger.info(f"Setup marked as completed ({marker})")
