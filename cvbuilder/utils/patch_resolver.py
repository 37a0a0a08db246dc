import os
import re
from dataclasses import dataclass

from ..cli_logger import logger
from ..errors import PatchFailure
from .command_executor import run_shell_command

PATCHES_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "patches")
BUNDLED_PATCH = "bow_wrappers.patch"

FILE_LINE = re.compile(r"^(?:checking|patching) file '?(.+?)'?$")
HUNK_FAILED = re.compile(r"^Hunk #(\d+) FAILED")
STRAY_SUFFIXES = (".orig", ".rej")


@dataclass(frozen=True)
class PatchSet:
    content: str
    targets: tuple

    @classmethod
    def from_text(cls, content):
        targets = []
        for line in content.splitlines():
            if not line.startswith("+++ "):
                continue
            path = line[4:].split("\t", 1)[0].strip()
            if path.startswith("b/"):
                path = path[2:]
            if path != "/dev/null" and path not in targets:
                targets.append(path)
        return cls(content, tuple(targets))

    @classmethod
    def from_file(cls, path):
        with open(path, "r") as f:
            return cls.from_text(f.read())


@dataclass(frozen=True)
class InReplace:
    """Literal substitutions made in one source file after patching."""
    path: str
    replacements: tuple

    def apply(self, source_tree):
        full_path = os.path.join(source_tree, self.path)
        with open(full_path, "r") as f:
            text = f.read()
        for old, new in self.replacements:
            if old not in text and new in text:
                continue
            if old not in text:
                raise PatchFailure(f"'{old}' not found in {self.path}", path=self.path)
            text = text.replace(old, new)
        with open(full_path, "w") as f:
            f.write(text)


def load_bundled_patch(name=BUNDLED_PATCH):
    return PatchSet.from_file(os.path.join(PATCHES_DIR, name))


def _locate_failure(output):
    """Return (file, hunk number) of the first failing hunk in patch output."""
    current = None
    for line in output.splitlines():
        match = FILE_LINE.match(line.strip())
        if match:
            current = match.group(1)
            continue
        match = HUNK_FAILED.match(line.strip())
        if match:
            return current, int(match.group(1))
    return current, None


class PatchApplier:
    """Applies a PatchSet and in-place edits to a source tree, all or nothing."""

    def __init__(self, patch_command=("patch", "-p1", "--forward", "--batch")):
        self.patch_command = list(patch_command)

    def apply(self, patch_set, source_tree, edits=()):
        touched = list(patch_set.targets) if patch_set is not None else []
        touched += [edit.path for edit in edits if edit.path not in touched]

        for relative_path in touched:
            if not os.path.isfile(os.path.join(source_tree, relative_path)):
                raise PatchFailure(
                    f"Patch target '{relative_path}' does not exist in {source_tree}.",
                    path=relative_path,
                )

        if patch_set is not None:
            logger.info(f"  - Checking patch against {source_tree}")
            try:
                self._run_patch(patch_set, source_tree, dry_run=True)
            except PatchFailure:
                if not self._already_applied(patch_set, source_tree):
                    raise
                # Left behind by an earlier run whose build step failed.
                logger.info("  - Patch is already applied, skipping it.")
                patch_set = None

        backups = self._backup(source_tree, touched)
        stray = self._existing_stray_files(source_tree, touched)
        try:
            if patch_set is not None:
                logger.info(f"  - Applying patch to {len(patch_set.targets)} file(s)")
                self._run_patch(patch_set, source_tree, dry_run=False)
            for edit in edits:
                logger.info(f"  - Editing {edit.path}")
                edit.apply(source_tree)
        except BaseException:
            logger.warning("  - Patching failed, restoring the source tree.")
            self._restore(source_tree, backups, stray)
            raise
        logger.success("  - Source tree patched.")

    def _already_applied(self, patch_set, source_tree):
        command = [arg for arg in self.patch_command if arg != "--forward"] + ["--reverse", "--dry-run"]
        _, _, returncode = run_shell_command(command, input_data=patch_set.content, cwd=source_tree)
        return returncode == 0

    def _run_patch(self, patch_set, source_tree, dry_run):
        command = self.patch_command + (["--dry-run"] if dry_run else [])
        stdout, stderr, returncode = run_shell_command(command, input_data=patch_set.content, cwd=source_tree)
        if returncode == 0:
            return
        output = "\n".join(part for part in (stdout, stderr) if part)
        path, hunk = _locate_failure(output)
        if hunk is not None:
            message = f"Hunk #{hunk} of {path} does not apply cleanly."
        else:
            message = f"Patch does not apply to {source_tree} (Exit Code: {returncode})."
        raise PatchFailure(message, path=path, hunk=hunk, output=output)

    def _backup(self, source_tree, touched):
        backups = {}
        for relative_path in touched:
            with open(os.path.join(source_tree, relative_path), "rb") as f:
                backups[relative_path] = f.read()
        return backups

    def _existing_stray_files(self, source_tree, touched):
        existing = set()
        for relative_path in touched:
            for suffix in STRAY_SUFFIXES:
                candidate = os.path.join(source_tree, relative_path + suffix)
                if os.path.exists(candidate):
                    existing.add(candidate)
        return existing

    def _restore(self, source_tree, backups, stray):
        for relative_path, content in backups.items():
            full_path = os.path.join(source_tree, relative_path)
            with open(full_path, "wb") as f:
                f.write(content)
            for suffix in STRAY_SUFFIXES:
                candidate = full_path + suffix
                if candidate not in stray and os.path.exists(candidate):
                    os.remove(candidate)
