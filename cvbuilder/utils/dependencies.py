import os
from dataclasses import replace

from ..cli_logger import logger
from ..options import REQUIRED

DEFAULT_OPT_ROOT = "/usr/local/opt"

def resolve_dependencies(declared, conf):
    """
    Resolves each declared dependency to an install prefix.

    An explicit entry under [dependencies.paths] wins; an empty string there marks
    the dependency as not present. Otherwise the dependency is looked up as
    <opt_root>/<name>.

    Returns:
        dict: dependency name -> prefix path, or None when not present.
    """
    dependency_config = (conf or {}).get("dependencies", {})
    opt_root = dependency_config.get("opt_root", DEFAULT_OPT_ROOT)
    paths = dependency_config.get("paths", {})

    resolved = {}
    for dependency in declared:
        if dependency.name in paths:
            path = paths[dependency.name] or None
        else:
            candidate = os.path.join(opt_root, dependency.name)
            path = candidate if os.path.isdir(candidate) else None

        if path is None and dependency.requirement == REQUIRED:
            logger.warning(f"  - Required dependency '{dependency.name}' was not found.")
        resolved[dependency.name] = path
    return resolved

def with_resolved_paths(declared, resolved):
    return [replace(dependency, resolved_path=resolved.get(dependency.name)) for dependency in declared]
