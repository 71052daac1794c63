"""Package-manager and post-setup command execution."""

from templatr_setup.packages.runner import (
    GLOBAL_INSTALL_COMMANDS,
    CommandResult,
    install_global_packages,
    run_command,
    run_install_command,
    run_post_setup,
)

__all__ = [
    "GLOBAL_INSTALL_COMMANDS",
    "CommandResult",
    "run_command",
    "install_global_packages",
    "run_install_command",
    "run_post_setup",
]
