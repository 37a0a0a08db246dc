from dataclasses import dataclass
from types import MappingProxyType

from .cli_logger import logger
from .errors import (
    ConflictError,
    DuplicateOptionError,
    MissingDependencyError,
    OptionError,
    UnknownOptionError,
)

BOOLEAN = "boolean"
CHOICE = "choice"

REQUIRED = "required"
RECOMMENDED = "recommended"
OPTIONAL = "optional"
BUILD = "build"

# Spellings accepted for boolean selections coming from the CLI or config file.
TRUTHY = ("true", "on", "yes", "1")
FALSY = ("false", "off", "no", "0")


@dataclass(frozen=True)
class Option:
    name: str
    kind: str = BOOLEAN
    default: object = False
    choices: tuple = ()
    description: str = ""
    implies_dependency: str = None

    def __post_init__(self):
        if self.kind == CHOICE and self.default not in self.choices:
            raise OptionError(f"Default '{self.default}' of '{self.name}' is not one of {list(self.choices)}.")
        if self.kind not in (BOOLEAN, CHOICE):
            raise OptionError(f"Option '{self.name}' has unknown kind '{self.kind}'.")

    def check(self, value):
        if self.kind == BOOLEAN:
            if isinstance(value, str) and value.lower() in TRUTHY + FALSY:
                value = value.lower() in TRUTHY
            if not isinstance(value, bool):
                raise OptionError(f"Option '{self.name}' takes true or false, got {value!r}.")
        elif value not in self.choices:
            raise OptionError(f"Option '{self.name}' takes one of {list(self.choices)}, got {value!r}.")
        return value


@dataclass(frozen=True)
class Dependency:
    name: str
    requirement: str = OPTIONAL
    resolved_path: str = None

    @property
    def present(self):
        return self.resolved_path is not None


class OptionRegistry:
    """Declared options plus this invocation's selections."""

    def __init__(self):
        self._options = {}
        self._selections = {}
        self._disabled = set()
        self._exclusions = []

    def declare(self, option):
        if option.name in self._options:
            raise DuplicateOptionError(option.name)
        self._options[option.name] = option
        return option

    def exclude(self, first, second, reason=""):
        for name in (first, second):
            self.option(name)
        self._exclusions.append((first, second, reason or "options are mutually exclusive"))

    def option(self, name):
        try:
            return self._options[name]
        except KeyError:
            raise UnknownOptionError(name) from None

    def options(self):
        return list(self._options.values())

    def select(self, name, value):
        option = self.option(name)
        if name in self._selections:
            raise OptionError(f"Option '{name}' was already selected for this invocation.")
        self._selections[name] = option.check(value)

    def is_selected(self, name):
        self.option(name)
        return name in self._selections

    def value_of(self, name):
        option = self.option(name)
        if name in self._selections:
            return self._selections[name]
        if name in self._disabled:
            return False
        return option.default

    def is_enabled(self, name):
        option = self.option(name)
        value = self.value_of(name)
        if option.kind == BOOLEAN:
            return value
        return value != option.default

    def validate(self):
        for first, second, reason in self._exclusions:
            if self.is_enabled(first) and self.is_enabled(second):
                raise ConflictError(first, second, reason)

    def reconcile(self, dependencies):
        """Turn off default-on options whose dependency is not present.

        An option the user asked for explicitly is never turned off; a missing
        dependency there is an error instead.
        """
        if dependencies is None:
            return
        for option in self._options.values():
            dependency = option.implies_dependency
            if not dependency or not self.is_enabled(option.name):
                continue
            if dependencies.get(dependency) is not None:
                continue
            if self.is_selected(option.name):
                raise MissingDependencyError(dependency, option.name)
            logger.warning(f"  - '{dependency}' is not present, building without '{option.name}'.")
            self._disabled.add(option.name)

    def snapshot(self):
        self.validate()
        return MappingProxyType({name: self.value_of(name) for name in self._options})


def declare_opencv_options():
    """Return a registry holding the option set of the patched OpenCV build."""
    registry = OptionRegistry()
    for option in OPENCV_OPTIONS:
        registry.declare(option)
    registry.exclude("arch", "cuda", "CUDA needs a 64-bit build")
    registry.exclude("cuda", "cxx11", "CUDA links against libstdc++, C++11 mode needs libc++")
    return registry


OPENCV_OPTIONS = (
    Option("arch", CHOICE, "native", ("native", "32-bit"), "Restrict the build to a target architecture"),
    Option("java", description="Build with Java support", implies_dependency="ant"),
    Option("qt", description="Build the Qt4 backend to HighGUI", implies_dependency="qt"),
    Option("tbb", description="Enable parallel code in OpenCV using Intel TBB", implies_dependency="tbb"),
    Option("tests", description="Build with accuracy & performance tests"),
    Option("opencl", default=True, description="GPU code in OpenCV using OpenCL"),
    Option("cuda", description="Build with CUDA support"),
    Option("video-backend", CHOICE, "qtkit", ("qtkit", "quicktime"), "Video I/O backend"),
    Option("cxx11", description="Build using C++11 mode"),
    Option("openexr", default=True, description="Build with OpenEXR support", implies_dependency="openexr"),
    Option("ffmpeg", description="Build with FFmpeg video I/O", implies_dependency="ffmpeg"),
    Option("gstreamer", description="Build with GStreamer video I/O", implies_dependency="gstreamer"),
    Option("libdc1394", description="Build with IEEE 1394 camera support", implies_dependency="libdc1394"),
    Option("openni", description="Build with OpenNI depth sensor support", implies_dependency="openni"),
    Option("bottle", description="Produce a relocatable binary artifact"),
)

OPENCV_DEPENDENCIES = (
    Dependency("ant", BUILD),
    Dependency("cmake", BUILD),
    Dependency("pkg-config", BUILD),
    Dependency("jpeg", REQUIRED),
    Dependency("libpng", REQUIRED),
    Dependency("libtiff", REQUIRED),
    Dependency("numpy", REQUIRED),
    Dependency("openexr", RECOMMENDED),
    Dependency("eigen"),
    Dependency("gstreamer"),
    Dependency("jasper"),
    Dependency("libdc1394"),
    Dependency("openni"),
    Dependency("qt"),
    Dependency("tbb"),
    Dependency("ffmpeg"),
)
