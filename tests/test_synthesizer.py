import unittest
from unittest.mock import MagicMock
from cvbuilder.errors import ConflictError, CvBuilderError, MissingDependencyError, ProbeFailure
from cvbuilder.options import declare_opencv_options
from cvbuilder.probe import PlatformFacts
from cvbuilder.synthesizer import FlagAssignment, Rule, render_flags, synthesize

PREFIX = "/usr/local/Cellar/opencv-bow/2.4.9"
DEPENDENCIES = {"jpeg": "/usr/local/opt/jpeg"}
PYTHON_PREFIX = "/usr/local/Frameworks/Python.framework/Versions/2.7"

MAVERICKS = {
    "os.name": "darwin",
    "os.version": "10.9.5",
    "cpu.ssse3": True,
    "cpu.sse4_1": True,
    "cpu.sse4_2": True,
    "cpu.avx": True,
    "compiler.family": "clang",
    "python.prefix": PYTHON_PREFIX,
    "python.version": "2.7",
}


def facts(**overrides):
    values = dict(MAVERICKS)
    for key, value in overrides.items():
        key = key.replace("__", ".")
        if value is None:
            values.pop(key, None)
        else:
            values[key] = value
    return PlatformFacts.of(values)


def options(**selections):
    registry = declare_opencv_options()
    for name, value in selections.items():
        registry.select(name.replace("_", "-"), value)
    return registry


def as_dict(flags):
    return {flag.key: flag.value for flag in flags}


class TestSynthesize(unittest.TestCase):

    def test_default_flags(self):
        flags = synthesize(options(), facts(), DEPENDENCIES, PREFIX)
        self.assertEqual(render_flags(flags), [
            f"-DCMAKE_INSTALL_PREFIX={PREFIX}",
            "-DCMAKE_BUILD_TYPE=Release",
            "-DCMAKE_FIND_FRAMEWORK=LAST",
            "-DCMAKE_VERBOSE_MAKEFILE=ON",
            "-DCMAKE_OSX_DEPLOYMENT_TARGET=",
            "-DBUILD_ZLIB=OFF",
            "-DBUILD_TIFF=OFF",
            "-DBUILD_PNG=OFF",
            "-DBUILD_OPENEXR=OFF",
            "-DBUILD_JASPER=OFF",
            "-DBUILD_JPEG=OFF",
            "-DJPEG_INCLUDE_DIR=/usr/local/opt/jpeg/include",
            "-DJPEG_LIBRARY=/usr/local/opt/jpeg/lib/libjpeg.dylib",
            f"-DPYTHON_LIBRARY={PYTHON_PREFIX}/lib/libpython2.7.dylib",
            f"-DPYTHON_INCLUDE_DIR={PYTHON_PREFIX}/include/python2.7",
            "-DBUILD_TESTS=OFF",
            "-DBUILD_PERF_TESTS=OFF",
            "-DBUILD_opencv_java=OFF",
            "-DWITH_OPENEXR=ON",
            "-DWITH_QT=OFF",
            "-DWITH_TBB=OFF",
            "-DWITH_FFMPEG=OFF",
            "-DWITH_GSTREAMER=OFF",
            "-DWITH_1394=OFF",
            "-DWITH_QUICKTIME=OFF",
            "-DWITH_CUDA=OFF",
            "-DWITH_OPENCL=ON",
            "-DENABLE_SSSE3=ON",
            "-DENABLE_SSE41=ON",
            "-DENABLE_SSE42=ON",
            "-DENABLE_AVX=ON",
        ])

    def test_output_is_deterministic(self):
        selections = {"java": True, "tbb": True, "video_backend": "quicktime"}
        first = synthesize(options(**selections), facts(), DEPENDENCIES, PREFIX)
        second = synthesize(options(**selections), facts(), DEPENDENCIES, PREFIX)
        self.assertEqual(first, second)
        self.assertEqual(render_flags(first), render_flags(second))

    def test_keys_are_unique(self):
        flags = synthesize(options(cuda=True, openni=True), facts(), DEPENDENCIES, PREFIX)
        keys = [flag.key for flag in flags]
        self.assertEqual(len(keys), len(set(keys)))

    def test_opencl_forced_off_below_minimum_os(self):
        flags = synthesize(options(opencl=True), facts(os__version="10.5"), DEPENDENCIES, PREFIX)
        self.assertIs(as_dict(flags)["WITH_OPENCL"], False)
        self.assertIn("-DWITH_OPENCL=OFF", render_flags(flags))

    def test_opencl_override_keeps_flag_position(self):
        old = [flag.key for flag in synthesize(options(), facts(os__version="10.6.8"), DEPENDENCIES, PREFIX)]
        new = [flag.key for flag in synthesize(options(), facts(), DEPENDENCIES, PREFIX)]
        self.assertEqual(old, new)

    def test_opencl_allowed_from_minimum_os(self):
        flags = synthesize(options(), facts(os__version="10.7"), DEPENDENCIES, PREFIX)
        self.assertIs(as_dict(flags)["WITH_OPENCL"], True)

    def test_opencl_disabled_by_user(self):
        flags = synthesize(options(opencl=False), facts(os__version=None), DEPENDENCIES, PREFIX)
        self.assertIs(as_dict(flags)["WITH_OPENCL"], False)

    def test_opencl_gate_needs_os_version(self):
        with self.assertRaises(ProbeFailure) as cm:
            synthesize(options(), facts(os__version=None), DEPENDENCIES, PREFIX)
        self.assertEqual(cm.exception.query, "os.version")

    def test_version_gate_only_applies_to_darwin(self):
        flags = synthesize(options(), facts(os__name="linux", os__version="3.2"), DEPENDENCIES, PREFIX)
        values = as_dict(flags)
        self.assertIs(values["WITH_OPENCL"], True)
        self.assertEqual(values["JPEG_LIBRARY"], "/usr/local/opt/jpeg/lib/libjpeg.so")

    def test_32bit_architecture(self):
        flags = synthesize(options(arch="32-bit"), facts(), DEPENDENCIES, PREFIX)
        values = as_dict(flags)
        self.assertEqual(values["CMAKE_OSX_ARCHITECTURES"], "i386")
        self.assertEqual(values["OPENCV_EXTRA_C_FLAGS"], "-arch i386 -m32")
        self.assertEqual(values["OPENCV_EXTRA_CXX_FLAGS"], "-arch i386 -m32")
        self.assertFalse([key for key in values if key.startswith("ENABLE_")])

    def test_bottle_skips_instruction_sets(self):
        flags = synthesize(options(bottle=True), facts(), DEPENDENCIES, PREFIX)
        self.assertFalse([flag for flag in flags if flag.key.startswith("ENABLE_")])

    def test_gcc_skips_instruction_sets_without_cpu_facts(self):
        cpu_missing = {"cpu__ssse3": None, "cpu__sse4_1": None, "cpu__sse4_2": None, "cpu__avx": None}
        flags = synthesize(options(), facts(compiler__family="gcc", **cpu_missing), DEPENDENCIES, PREFIX)
        self.assertFalse([flag for flag in flags if flag.key.startswith("ENABLE_")])

    def test_instruction_sets_follow_cpu_features(self):
        flags = synthesize(options(), facts(cpu__avx=False, cpu__sse4_2=False), DEPENDENCIES, PREFIX)
        enabled = [flag.key for flag in flags if flag.key.startswith("ENABLE_")]
        self.assertEqual(enabled, ["ENABLE_SSSE3", "ENABLE_SSE41"])

    def test_instruction_sets_need_cpu_facts_for_clang(self):
        with self.assertRaises(ProbeFailure):
            synthesize(options(), facts(cpu__avx=None), DEPENDENCIES, PREFIX)

    def test_cuda_flags(self):
        values = as_dict(synthesize(options(cuda=True), facts(), DEPENDENCIES, PREFIX))
        self.assertIs(values["WITH_CUDA"], True)
        self.assertEqual(values["CMAKE_CXX_FLAGS"], "-stdlib=libstdc++")

    def test_cxx11_flags(self):
        values = as_dict(synthesize(options(cxx11=True), facts(), DEPENDENCIES, PREFIX))
        self.assertEqual(values["CMAKE_CXX_FLAGS"], "-std=c++11 -stdlib=libc++")

    def test_cuda_and_cxx11_conflict_in_rules(self):
        snapshot = dict(options().snapshot())
        snapshot.update({"cuda": True, "cxx11": True})
        with self.assertRaises(ConflictError) as cm:
            synthesize(snapshot, facts(), DEPENDENCIES, PREFIX)
        self.assertEqual(cm.exception.component, "FlagSynthesizer")
        self.assertEqual((cm.exception.first, cm.exception.second), ("cuda", "cxx11"))

    def test_conflicting_options_fail_before_any_rule_runs(self):
        rule = MagicMock(return_value=[])
        registry = options(arch="32-bit", cuda=True)
        with self.assertRaises(ConflictError):
            synthesize(registry, facts(), DEPENDENCIES, PREFIX, rules=(Rule("probe", rule),))
        rule.assert_not_called()

    def test_video_backend_emits_one_flag(self):
        flags = synthesize(options(video_backend="quicktime"), facts(), DEPENDENCIES, PREFIX)
        quicktime = [flag for flag in flags if flag.key == "WITH_QUICKTIME"]
        self.assertEqual(quicktime, [FlagAssignment("WITH_QUICKTIME", True)])

    def test_tests_enabled_emits_nothing(self):
        values = as_dict(synthesize(options(tests=True), facts(), DEPENDENCIES, PREFIX))
        self.assertNotIn("BUILD_TESTS", values)
        self.assertNotIn("BUILD_PERF_TESTS", values)

    def test_feature_toggles(self):
        values = as_dict(synthesize(options(java=True, qt=True, libdc1394=True, openexr=False),
                                    facts(), DEPENDENCIES, PREFIX))
        self.assertIs(values["BUILD_opencv_java"], True)
        self.assertIs(values["WITH_QT"], True)
        self.assertIs(values["WITH_1394"], True)
        self.assertIs(values["WITH_OPENEXR"], False)

    def test_openni_flag(self):
        values = as_dict(synthesize(options(openni=True), facts(), DEPENDENCIES, PREFIX))
        self.assertIs(values["WITH_OPENNI"], True)

    def test_missing_jpeg(self):
        with self.assertRaises(MissingDependencyError) as cm:
            synthesize(options(), facts(), {"jpeg": None}, PREFIX)
        self.assertEqual(cm.exception.dependency, "jpeg")
        self.assertEqual(cm.exception.component, "FlagSynthesizer")

    def test_missing_python_fact(self):
        with self.assertRaises(ProbeFailure):
            synthesize(options(), facts(python__prefix=None), DEPENDENCIES, PREFIX)


class TestRuleTable(unittest.TestCase):

    def test_same_key_without_override_conflicts(self):
        rules = (
            Rule("first", lambda ctx: [("WITH_X", True)]),
            Rule("second", lambda ctx: [("WITH_X", False)]),
        )
        with self.assertRaises(ConflictError) as cm:
            synthesize({}, PlatformFacts.of(), rules=rules)
        self.assertEqual((cm.exception.first, cm.exception.second), ("first", "second"))

    def test_declared_override_replaces_in_place(self):
        rules = (
            Rule("first", lambda ctx: [("WITH_X", True), ("WITH_Y", True)]),
            Rule("second", lambda ctx: [("WITH_X", False)], overrides=("first",)),
        )
        flags = synthesize({}, PlatformFacts.of(), rules=rules)
        self.assertEqual(flags, (FlagAssignment("WITH_X", False), FlagAssignment("WITH_Y", True)))

    def test_two_overrides_of_one_key_conflict(self):
        rules = (
            Rule("base", lambda ctx: [("WITH_X", True)]),
            Rule("gate_a", lambda ctx: [("WITH_X", False)], overrides=("base",)),
            Rule("gate_b", lambda ctx: [("WITH_X", False)], overrides=("base",)),
        )
        with self.assertRaises(ConflictError) as cm:
            synthesize({}, PlatformFacts.of(), rules=rules)
        self.assertEqual((cm.exception.first, cm.exception.second), ("gate_a", "gate_b"))

    def test_rule_assigning_key_twice_conflicts(self):
        rules = (Rule("twice", lambda ctx: [("WITH_X", True), ("WITH_X", False)]),)
        with self.assertRaises(ConflictError):
            synthesize({}, PlatformFacts.of(), rules=rules)

    def test_override_must_point_to_earlier_rule(self):
        rules = (
            Rule("gate", lambda ctx: [], overrides=("base",)),
            Rule("base", lambda ctx: []),
        )
        with self.assertRaises(CvBuilderError):
            synthesize({}, PlatformFacts.of(), rules=rules)

    def test_render(self):
        self.assertEqual(FlagAssignment("WITH_X", True).render(), "-DWITH_X=ON")
        self.assertEqual(FlagAssignment("WITH_X", False).render(), "-DWITH_X=OFF")
        self.assertEqual(FlagAssignment("PATH", "/opt/x").render(), "-DPATH=/opt/x")

if __name__ == "__main__":
    unittest.main()
