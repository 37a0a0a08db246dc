"""Turn option selections and platform facts into CMake flags.

The flags come from an ordered rule table. Each rule reads an immutable
snapshot of the options, the probed facts and the resolved dependency
prefixes, and returns the ``(key, value)`` pairs it wants. A key belongs to
the first rule that assigns it; a later rule may only replace it when it
names that rule in ``overrides``. Anything else is a conflict.
"""
import os
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping

from packaging.version import Version

from .errors import ConflictError, CvBuilderError, MissingDependencyError

COMPONENT = "FlagSynthesizer"
DEFAULT_PREFIX = "/usr/local"

# OpenCL 1.1 is required, but Snow Leopard and older come with 1.0
OPENCL_MINIMUM_DARWIN = "10.7"

BUNDLED_LIBRARIES = ("ZLIB", "TIFF", "PNG", "OPENEXR", "JASPER", "JPEG")

ARCH_32BIT_FLAGS = "-arch i386 -m32"

INSTRUCTION_SETS = (
    ("cpu.ssse3", "ENABLE_SSSE3"),
    ("cpu.sse4_1", "ENABLE_SSE41"),
    ("cpu.sse4_2", "ENABLE_SSE42"),
    ("cpu.avx", "ENABLE_AVX"),
)


@dataclass(frozen=True)
class FlagAssignment:
    key: str
    value: object

    def render(self):
        value = self.value
        if isinstance(value, bool):
            value = "ON" if value else "OFF"
        return f"-D{self.key}={value}"


@dataclass(frozen=True)
class Rule:
    name: str
    evaluate: Callable
    overrides: tuple = ()


@dataclass(frozen=True)
class ResolutionContext:
    options: Mapping
    facts: object
    dependencies: Mapping
    prefix: str

    def dependency(self, name, required_by):
        path = self.dependencies.get(name)
        if path is None:
            raise MissingDependencyError(name, required_by, component=COMPONENT)
        return path

    def library_suffix(self):
        return "dylib" if self.facts["os.name"] == "darwin" else "so"


def _cmake_defaults(ctx):
    return [
        ("CMAKE_INSTALL_PREFIX", ctx.prefix),
        ("CMAKE_BUILD_TYPE", "Release"),
        ("CMAKE_FIND_FRAMEWORK", "LAST"),
        ("CMAKE_VERBOSE_MAKEFILE", True),
    ]


def _system_libraries(ctx):
    flags = [("CMAKE_OSX_DEPLOYMENT_TARGET", "")]
    flags += [(f"BUILD_{library}", False) for library in BUNDLED_LIBRARIES]
    return flags


def _jpeg_paths(ctx):
    jpeg = ctx.dependency("jpeg", "jpeg_paths")
    return [
        ("JPEG_INCLUDE_DIR", os.path.join(jpeg, "include")),
        ("JPEG_LIBRARY", os.path.join(jpeg, "lib", f"libjpeg.{ctx.library_suffix()}")),
    ]


def _python_paths(ctx):
    prefix = ctx.facts["python.prefix"]
    version = ctx.facts["python.version"]
    return [
        ("PYTHON_LIBRARY", os.path.join(prefix, "lib", f"libpython{version}.{ctx.library_suffix()}")),
        ("PYTHON_INCLUDE_DIR", os.path.join(prefix, "include", f"python{version}")),
    ]


def _tests(ctx):
    if ctx.options["tests"]:
        return []
    return [("BUILD_TESTS", False), ("BUILD_PERF_TESTS", False)]


def _toggle(option, key):
    def evaluate(ctx):
        return [(key, bool(ctx.options[option]))]
    return Rule(f"toggle_{option}", evaluate)


def _video_backend(ctx):
    return [("WITH_QUICKTIME", ctx.options["video-backend"] == "quicktime")]


def _cuda(ctx):
    if ctx.options["cuda"]:
        return [("WITH_CUDA", True), ("CMAKE_CXX_FLAGS", "-stdlib=libstdc++")]
    return [("WITH_CUDA", False)]


def _cxx11(ctx):
    if ctx.options["cxx11"]:
        return [("CMAKE_CXX_FLAGS", "-std=c++11 -stdlib=libc++")]
    return []


def _opencl(ctx):
    return [("WITH_OPENCL", bool(ctx.options["opencl"]))]


def _opencl_minimum_os(ctx):
    if not ctx.options["opencl"] or ctx.facts["os.name"] != "darwin":
        return []
    if Version(ctx.facts["os.version"]) < Version(OPENCL_MINIMUM_DARWIN):
        return [("WITH_OPENCL", False)]
    return []


def _openni(ctx):
    if ctx.options["openni"]:
        return [("WITH_OPENNI", True)]
    return []


def _architecture(ctx):
    if ctx.options["arch"] != "32-bit":
        return []
    return [
        ("CMAKE_OSX_ARCHITECTURES", "i386"),
        ("OPENCV_EXTRA_C_FLAGS", ARCH_32BIT_FLAGS),
        ("OPENCV_EXTRA_CXX_FLAGS", ARCH_32BIT_FLAGS),
    ]


def _instruction_sets(ctx):
    # Host-specific instructions never go into a 32-bit or relocatable build.
    if ctx.options["arch"] != "native" or ctx.options["bottle"]:
        return []
    if ctx.facts["compiler.family"] != "clang":
        return []
    return [(key, True) for fact, key in INSTRUCTION_SETS if ctx.facts[fact]]


OPENCV_RULES = (
    Rule("cmake_defaults", _cmake_defaults),
    Rule("system_libraries", _system_libraries),
    Rule("jpeg_paths", _jpeg_paths),
    Rule("python_paths", _python_paths),
    Rule("tests", _tests),
    _toggle("java", "BUILD_opencv_java"),
    _toggle("openexr", "WITH_OPENEXR"),
    _toggle("qt", "WITH_QT"),
    _toggle("tbb", "WITH_TBB"),
    _toggle("ffmpeg", "WITH_FFMPEG"),
    _toggle("gstreamer", "WITH_GSTREAMER"),
    _toggle("libdc1394", "WITH_1394"),
    Rule("video_backend", _video_backend),
    Rule("cuda", _cuda),
    Rule("cxx11", _cxx11),
    Rule("opencl", _opencl),
    Rule("opencl_minimum_os", _opencl_minimum_os, overrides=("opencl",)),
    Rule("openni", _openni),
    Rule("architecture", _architecture),
    Rule("instruction_sets", _instruction_sets),
)


def check_rule_table(rules):
    """Make sure rule names are unique and overrides only point backwards."""
    seen = set()
    for rule in rules:
        if rule.name in seen:
            raise CvBuilderError(f"Rule '{rule.name}' appears twice in the rule table.", component=COMPONENT)
        for target in rule.overrides:
            if target not in seen:
                raise CvBuilderError(
                    f"Rule '{rule.name}' overrides '{target}', which is not an earlier rule.",
                    component=COMPONENT,
                )
        seen.add(rule.name)


def synthesize(options, facts, dependencies=None, prefix=DEFAULT_PREFIX, rules=OPENCV_RULES):
    """Evaluate ``rules`` in order and return the resulting flags as a tuple.

    ``options`` is an OptionRegistry (validated here) or an already
    validated snapshot mapping. Output depends on nothing but the arguments.
    """
    check_rule_table(rules)
    if hasattr(options, "snapshot"):
        snapshot = options.snapshot()
    else:
        snapshot = MappingProxyType(dict(options))
    ctx = ResolutionContext(
        options=snapshot,
        facts=facts,
        dependencies=MappingProxyType(dict(dependencies or {})),
        prefix=prefix,
    )

    assignments = {}
    owners = {}
    for rule in rules:
        emitted = set()
        for key, value in rule.evaluate(ctx):
            if key in emitted:
                raise ConflictError(rule.name, rule.name, f"assigns '{key}' twice", component=COMPONENT)
            emitted.add(key)
            owner = owners.get(key)
            if owner is not None and owner not in rule.overrides:
                raise ConflictError(
                    owner, rule.name,
                    f"both assign '{key}' and neither overrides the other",
                    component=COMPONENT,
                )
            # Replacing an existing key keeps its original position.
            assignments[key] = FlagAssignment(key, value)
            owners[key] = rule.name
    return tuple(assignments.values())


def render_flags(flags):
    return [flag.render() for flag in flags]
