"""
Configuration for the flow editor core.
"""

from flowedit.config.editor_config import EditorConfig
from flowedit.config.env_utils import read_env_defaults

__all__ = ["EditorConfig", "read_env_defaults"]
