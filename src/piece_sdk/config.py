"""
P/ECE Link Configuration
========================

Runtime settings for talking to the device. Configuration can come from:
- Default values (defined here)
- Environment variables
- Command-line options (applied on top by the CLI)

Environment variables (all optional):
    PIECE_TIMEOUT: Bulk transfer timeout in seconds (float)
    PIECE_OUTPUT_DIR: Directory for downloads and backups
    PIECE_DUMP_FILE: Output filename for raw flash dumps
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import os


# Bulk transfer timeout used by the P/ECE desktop tools
DEFAULT_TIMEOUT: float = 1.0

DEFAULT_DUMP_FILENAME: str = "dump.img"


@dataclass
class LinkConfig:
    """
    Configuration for a P/ECE session.

    Attributes:
        timeout: Per-transfer timeout in seconds (default: 1.0)
        interface: USB interface number to claim (default: 0)
        output_dir: Where downloads and backups are written (default: cwd)
        dump_filename: Output file for raw flash dumps (default: dump.img)
        png_scale: Pixel scale for PNG screenshots (default: 3)
    """

    timeout: float = DEFAULT_TIMEOUT
    interface: int = 0
    output_dir: Path = field(default_factory=lambda: Path("."))
    dump_filename: str = DEFAULT_DUMP_FILENAME
    png_scale: int = 3

    @property
    def dump_path(self) -> Path:
        """Full path of the raw dump output file."""
        return self.output_dir / self.dump_filename

    @classmethod
    def from_env(cls) -> "LinkConfig":
        """
        Create LinkConfig from environment variables.

        Returns:
            LinkConfig with values from environment variables
        """
        config = cls()

        if timeout := os.environ.get("PIECE_TIMEOUT"):
            try:
                config.timeout = float(timeout)
            except ValueError:
                pass  # Ignore invalid values

        if output_dir := os.environ.get("PIECE_OUTPUT_DIR"):
            config.output_dir = Path(output_dir)

        if dump_file := os.environ.get("PIECE_DUMP_FILE"):
            config.dump_filename = dump_file

        return config


# Global default configuration (can be overridden in tests)
_default_config: Optional[LinkConfig] = None


def get_default_config() -> LinkConfig:
    """
    Get the default link configuration.

    Creates from environment variables on first access.
    Can be overridden by calling set_default_config().
    """
    global _default_config
    if _default_config is None:
        _default_config = LinkConfig.from_env()
    return _default_config


def set_default_config(config: Optional[LinkConfig]) -> None:
    """Set (or with None, reset) the default link configuration."""
    global _default_config
    _default_config = config
