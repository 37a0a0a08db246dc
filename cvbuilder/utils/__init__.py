from .command_executor import run_shell_command
from .configure_resolver import resolve_cmake_commands
from .dependencies import resolve_dependencies, with_resolved_paths
from .patch_resolver import InReplace, PatchApplier, PatchSet, load_bundled_patch
