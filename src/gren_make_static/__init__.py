"""gren-make-static — package compiled Gren applications as snapshots or static executables."""

from gren_make_static.assemble import make_executable, make_snapshot
from gren_make_static.config import ToolConfig, load_config
from gren_make_static.transform import transform

__all__ = [
    "ToolConfig",
    "load_config",
    "make_executable",
    "make_snapshot",
    "transform",
]
