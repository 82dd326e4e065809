from ._version import __version__
from .errors import SkillportError
from .installer import Installer, InstallReport
from .service import InstallOptions, InstallResult, InstallService
from .store import JsonStore

__all__ = [
    "__version__",
    "Installer",
    "InstallOptions",
    "InstallReport",
    "InstallResult",
    "InstallService",
    "JsonStore",
    "SkillportError",
]
