import os

from ..cli_logger import logger
from ..synthesizer import render_flags

def resolve_cmake_commands(source_directory: str, flags, jobs: int = None) -> dict:
    """
    Resolves the configure, build and install commands for a CMake source tree.

    Args:
        source_directory (str): The absolute path to the extracted source tree.
        flags: The synthesized FlagAssignment sequence, passed to cmake in order.
        jobs (int, optional): Parallel make jobs. Defaults to the CPU count.

    Returns:
        dict: 'configure_command', 'build_command' and 'install_command' lists.
    """
    jobs = jobs or os.cpu_count() or 1
    logger.info(f"  - Generating CMake build commands for {source_directory}.")

    configure_cmd = ["cmake", source_directory] + render_flags(flags)
    build_cmd = ["make", "-j", str(jobs)]
    install_cmd = ["make", "install"]

    return {
        "configure_command": configure_cmd,
        "build_command": build_cmd,
        "install_command": install_cmd,
    }
