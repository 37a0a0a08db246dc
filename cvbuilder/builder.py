import contextlib
import os
import shutil
from dataclasses import dataclass, field

from .cli_logger import logger
from .errors import BuildToolFailure, CvBuilderError
from .options import OPENCV_DEPENDENCIES, declare_opencv_options
from .probe import PlatformProbe, ProbeConfig
from .synthesizer import DEFAULT_PREFIX, synthesize
from .utils import InReplace, load_bundled_patch, resolve_cmake_commands, resolve_dependencies, run_shell_command
from .utils.patch_resolver import PatchApplier

BUILD_DIR_NAME = "macbuild"
OPENNI_FIND_MODULE = "cmake/OpenCVFindOpenNI.cmake"

STEPS = (
    ("configure", "configure_command"),
    ("compile", "build_command"),
    ("install", "install_command"),
)


@dataclass(frozen=True)
class BuildPlan:
    source_directory: str
    working_directory: str
    flags: tuple
    prefix: str = DEFAULT_PREFIX
    patch: object = None
    edits: tuple = ()
    configure_command: tuple = ()
    build_command: tuple = ()
    install_command: tuple = ()

    def steps(self):
        return [(step, getattr(self, attribute)) for step, attribute in STEPS]


@dataclass(frozen=True)
class StepResult:
    step: str
    command: tuple
    returncode: int
    output: str = ""


@dataclass
class InvocationResult:
    working_directory: str
    steps: list = field(default_factory=list)

    @property
    def succeeded(self):
        return len(self.steps) == len(STEPS) and all(s.returncode == 0 for s in self.steps)


@contextlib.contextmanager
def scoped_directory(path, keep=False):
    """Create ``path`` for the duration of the block and remove it afterwards.

    A directory that already existed is left in place.
    """
    created = not os.path.exists(path)
    os.makedirs(path, exist_ok=True)
    try:
        yield path
    finally:
        if created and not keep:
            shutil.rmtree(path, ignore_errors=True)
        elif created:
            logger.info(f"  - Keeping build directory {path}")


class BuildInvoker:
    """Runs configure, compile and install one after another."""

    def __init__(self, keep_working_directory=False, timeout=None, env=None):
        self.keep_working_directory = keep_working_directory
        self.timeout = timeout
        self.env = env

    def run(self, plan):
        result = InvocationResult(plan.working_directory)
        with scoped_directory(plan.working_directory, keep=self.keep_working_directory):
            for step, command in plan.steps():
                command = list(command)
                logger.info(f"  - Running {step}: {' '.join(command)}")
                stdout, stderr, returncode = run_shell_command(
                    command, env=self.env, cwd=plan.working_directory, timeout=self.timeout
                )
                output = "\n".join(part for part in (stdout, stderr) if part)
                result.steps.append(StepResult(step, tuple(command), returncode, output))
                if returncode != 0:
                    raise BuildToolFailure(step, command, returncode, output)
                logger.success(f"  - {step} finished.")
        return result


def load_registry(conf, selections=()):
    """Build the option registry from the [options] table and CLI selections.

    CLI selections replace config values of the same name.
    """
    registry = declare_opencv_options()
    chosen = dict((conf or {}).get("options", {}))
    chosen.update(dict(selections))
    for name in sorted(chosen):
        registry.select(name, chosen[name])
    return registry


def source_edits(options, dependencies):
    if not options["openni"]:
        return ()
    openni = dependencies.get("openni")
    if openni is None:
        return ()
    return (
        InReplace(OPENNI_FIND_MODULE, (
            ("/usr/include/ni", os.path.join(openni, "include", "ni")),
            ("/usr/lib", os.path.join(openni, "lib")),
        )),
    )


def resolve_plan(conf, selections=(), source_dir=None, prefix=None, jobs=None, probe=None):
    """Resolve options, facts and dependencies into a BuildPlan.

    Options are validated before the platform is probed, so a conflicting
    selection never starts an external process.
    """
    conf = conf or {}
    build_config = conf.get("build", {})
    source_directory = os.path.abspath(source_dir or build_config.get("source_dir", "."))
    prefix = prefix or build_config.get("prefix", DEFAULT_PREFIX)
    jobs = jobs or build_config.get("jobs")
    working_directory = os.path.join(source_directory, build_config.get("build_dir", BUILD_DIR_NAME))

    registry = load_registry(conf, selections)
    registry.validate()

    dependencies = resolve_dependencies(OPENCV_DEPENDENCIES, conf)
    registry.reconcile(dependencies)
    snapshot = registry.snapshot()

    logger.info("Probing the host platform...")
    facts = (probe or PlatformProbe(ProbeConfig.from_config(conf))).probe()

    flags = synthesize(snapshot, facts, dependencies, prefix)
    commands = resolve_cmake_commands(source_directory, flags, jobs)
    return BuildPlan(
        source_directory=source_directory,
        working_directory=working_directory,
        flags=flags,
        prefix=prefix,
        patch=load_bundled_patch() if build_config.get("apply_patch", True) else None,
        edits=source_edits(snapshot, dependencies),
        configure_command=tuple(commands["configure_command"]),
        build_command=tuple(commands["build_command"]),
        install_command=tuple(commands["install_command"]),
    )


def report_failure(error):
    logger.error(f"{error.component} failed: {error.args[0]}")
    output = getattr(error, "output", "")
    if output:
        logger.output(output)


def build_opencv(conf, selections=(), source_dir=None, prefix=None, jobs=None,
                 keep_build_dir=None, probe=None, applier=None, invoker=None):
    """Resolve, patch, configure, compile and install. Returns True on success."""
    conf = conf or {}
    if keep_build_dir is None:
        keep_build_dir = conf.get("build", {}).get("keep_build_dir", False)
    try:
        plan = resolve_plan(conf, selections, source_dir=source_dir, prefix=prefix, jobs=jobs, probe=probe)
        logger.info(f"Resolved {len(plan.flags)} configuration flags.")

        if plan.patch is not None or plan.edits:
            logger.info("Patching the source tree...")
            (applier or PatchApplier()).apply(plan.patch, plan.source_directory, plan.edits)

        logger.info(f"Building in {plan.working_directory}...")
        (invoker or BuildInvoker(keep_working_directory=keep_build_dir)).run(plan)
    except CvBuilderError as e:
        report_failure(e)
        return False

    logger.success(f"OpenCV installed into {plan.prefix}.")
    return True
