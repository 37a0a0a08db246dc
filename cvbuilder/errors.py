"""Failure types raised while resolving and running an OpenCV build.

Every error names the component responsible for it so the command layer can
report where an invocation stopped. None of them are retried.
"""


class CvBuilderError(Exception):
    component = "cvbuilder"

    def __init__(self, message, component=None):
        super().__init__(message)
        if component is not None:
            self.component = component

    def __str__(self):
        return f"[{self.component}] {self.args[0]}"


class DuplicateOptionError(CvBuilderError):
    component = "OptionRegistry"

    def __init__(self, name):
        super().__init__(f"Option '{name}' is already declared.")
        self.name = name


class UnknownOptionError(CvBuilderError):
    component = "OptionRegistry"

    def __init__(self, name):
        super().__init__(f"Option '{name}' is not declared.")
        self.name = name


class OptionError(CvBuilderError):
    """A selection value that does not fit its option."""
    component = "OptionRegistry"


class ConflictError(CvBuilderError):
    """Two options, or two rules, claim something only one of them may have."""

    def __init__(self, first, second, reason, component="OptionRegistry"):
        super().__init__(f"'{first}' conflicts with '{second}': {reason}", component=component)
        self.first = first
        self.second = second


class MissingDependencyError(CvBuilderError):
    component = "OptionRegistry"

    def __init__(self, dependency, required_by, component=None):
        super().__init__(
            f"Dependency '{dependency}' required by '{required_by}' is not present.",
            component=component,
        )
        self.dependency = dependency
        self.required_by = required_by


class ProbeFailure(CvBuilderError):
    component = "PlatformProbe"

    def __init__(self, query, reason):
        super().__init__(f"Could not determine '{query}': {reason}")
        self.query = query
        self.reason = reason


class PatchFailure(CvBuilderError):
    component = "PatchApplier"

    def __init__(self, message, path=None, hunk=None, output=""):
        super().__init__(message)
        self.path = path
        self.hunk = hunk
        self.output = output


class BuildToolFailure(CvBuilderError):
    component = "BuildInvoker"

    def __init__(self, step, command, returncode, output=""):
        super().__init__(f"{step} step failed (Exit Code: {returncode}): {' '.join(command)}")
        self.step = step
        self.command = list(command)
        self.returncode = returncode
        self.output = output
