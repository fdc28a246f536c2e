from .parser import UserScriptMeta, parse_userscript
from .pipeline import ExtensionBuild, assemble_agent_build, convert_with_shims

__all__ = [
    "ExtensionBuild",
    "UserScriptMeta",
    "assemble_agent_build",
    "convert_with_shims",
    "parse_userscript",
]
