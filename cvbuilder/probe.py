import os
import platform
import re
from dataclasses import dataclass, field
from types import MappingProxyType

from .cli_logger import logger
from .errors import ProbeFailure
from .utils.command_executor import run_shell_command

CPU_FEATURES = {
    # fact key: (darwin sysctl token, /proc/cpuinfo flag)
    "cpu.ssse3": ("SSSE3", "ssse3"),
    "cpu.sse4_1": ("SSE4.1", "sse4_1"),
    "cpu.sse4_2": ("SSE4.2", "sse4_2"),
    "cpu.avx": ("AVX1.0", "avx"),
}

VERSION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)*)")

# Machines that can have the x86 SIMD extensions in CPU_FEATURES at all.
X86_MACHINES = ("x86_64", "amd64", "i386", "i486", "i586", "i686", "x86")

# /proc/cpuinfo labels its feature list "flags" on x86 and "Features" on ARM.
CPUINFO_FEATURE_LABELS = ("flags", "features")


@dataclass(frozen=True)
class ProbeConfig:
    """Executables the probe asks about, fixed for one invocation."""
    cc: str = "cc"
    python: str = "python3"
    python_config: str = "python3-config"
    cpuinfo_path: str = "/proc/cpuinfo"

    @classmethod
    def from_config(cls, conf):
        toolchain = (conf or {}).get("toolchain", {})
        defaults = cls()
        return cls(
            cc=toolchain.get("cc", defaults.cc),
            python=toolchain.get("python", defaults.python),
            python_config=toolchain.get("python_config", defaults.python_config),
        )


@dataclass(frozen=True)
class PlatformFacts:
    values: MappingProxyType = field(default_factory=lambda: MappingProxyType({}))
    failures: MappingProxyType = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def of(cls, values=None, failures=None):
        return cls(MappingProxyType(dict(values or {})), MappingProxyType(dict(failures or {})))

    def __getitem__(self, key):
        if key in self.values:
            return self.values[key]
        if key in self.failures:
            raise self.failures[key]
        raise ProbeFailure(key, "fact was never probed")

    def __contains__(self, key):
        return key in self.values

    def get(self, key, default=None):
        return self.values.get(key, default)


def _run_query(query, command):
    stdout, stderr, returncode = run_shell_command(command)
    if returncode != 0:
        raise ProbeFailure(query, (stderr or stdout).strip() or f"exit code {returncode}")
    return stdout.strip()


def parse_version(query, text):
    match = VERSION_PATTERN.match(text)
    if not match:
        raise ProbeFailure(query, f"unparsable version {text!r}")
    return match.group(1)


class PlatformProbe:
    """Runs the fixed list of read-only host queries."""

    def __init__(self, probe_config=None, system=None, machine=None):
        self.probe_config = probe_config or ProbeConfig()
        self.system = (system or platform.system()).lower()
        self.machine = (machine or platform.machine()).lower()

    def probe(self):
        values = {"os.name": self.system}
        failures = {}
        queries = [
            ("os.version", self._os_version),
            ("cpu", self._cpu_features),
            ("compiler.family", self._compiler_family),
            ("python.prefix", self._python_prefix),
            ("python.version", self._python_version),
        ]
        for query, method in queries:
            try:
                result = method()
            except ProbeFailure as e:
                logger.warning(f"  - Probe '{query}' failed: {e.reason}")
                keys = list(CPU_FEATURES) if query == "cpu" else [query]
                for key in keys:
                    failures[key] = e
                continue
            if isinstance(result, dict):
                values.update(result)
            else:
                values[query] = result
        return PlatformFacts.of(values, failures)

    def _os_version(self):
        if self.system == "darwin":
            output = _run_query("os.version", ["sw_vers", "-productVersion"])
        else:
            output = _run_query("os.version", ["uname", "-r"])
        return parse_version("os.version", output)

    def _cpu_features(self):
        if self.machine not in X86_MACHINES:
            # ARM hosts, Apple Silicon included, have none of these extensions.
            return {key: False for key in CPU_FEATURES}
        if self.system == "darwin":
            output = _run_query("cpu", ["sysctl", "-n", "machdep.cpu.features", "machdep.cpu.leaf7_features"])
            tokens = set(output.upper().split())
            index = 0
        else:
            tokens = self._cpuinfo_flags()
            index = 1
        return {key: names[index] in tokens for key, names in CPU_FEATURES.items()}

    def _cpuinfo_flags(self):
        path = self.probe_config.cpuinfo_path
        if not os.path.exists(path):
            raise ProbeFailure("cpu", f"{path} not found")
        try:
            with open(path, "r") as f:
                for line in f:
                    label, sep, value = line.partition(":")
                    if sep and label.strip().lower() in CPUINFO_FEATURE_LABELS:
                        return set(value.split())
        except IOError as e:
            raise ProbeFailure("cpu", str(e)) from e
        raise ProbeFailure("cpu", f"no flags or Features line in {path}")

    def _compiler_family(self):
        output = _run_query("compiler.family", [self.probe_config.cc, "--version"]).lower()
        if "clang" in output:
            return "clang"
        if "gcc" in output or "free software foundation" in output:
            return "gcc"
        raise ProbeFailure("compiler.family", f"unrecognised compiler {output.splitlines()[0] if output else ''!r}")

    def _python_prefix(self):
        output = _run_query("python.prefix", [self.probe_config.python_config, "--prefix"])
        if not output:
            raise ProbeFailure("python.prefix", "empty prefix")
        return output.splitlines()[0]

    def _python_version(self):
        output = _run_query(
            "python.version",
            [self.probe_config.python, "-c", "import sys; print('%d.%d' % sys.version_info[:2])"],
        )
        return parse_version("python.version", output)
