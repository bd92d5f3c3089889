import os
import shutil
import tempfile
import unittest
from unittest.mock import MagicMock, patch

from blasbuilder.builder import (
    INSTALL_LIB_SUBDIR,
    build_from_source,
    make_command,
    resolve,
    source_tree_location,
)
from blasbuilder.environment import snapshot
from blasbuilder.errors import ConfigurationError, ExternalToolError
from blasbuilder.target import resolve_build_parameters
from blasbuilder.utils import LinkKind


@patch('blasbuilder.builder.logger')
@patch('blasbuilder.target.logger')
@patch('blasbuilder.utils.file_manager.logger')
class TestBuildFromSource(unittest.TestCase):

    def setUp(self):
        self.project = tempfile.mkdtemp()
        self.source = os.path.join(self.project, "source")
        os.makedirs(self.source)
        with open(os.path.join(self.source, "Makefile"), "w") as f:
            f.write("all:\n")
        self.out_dir = os.path.join(self.project, "out")

    def tearDown(self):
        shutil.rmtree(self.project)

    def environment(self, triple, os_name, env="", features=(), variables=None, **options):
        options.update({"triple": triple, "os": os_name, "env": env, "out_dir": self.out_dir})
        with patch('blasbuilder.environment.logger'):
            return snapshot(self.project, variables=variables or {}, config={}, options=options, cli_features=features)

    def test_linux_x86_64_scenario(self, *mocks):
        runner = MagicMock()
        environment = self.environment("x86_64-unknown-linux-gnu", "linux", "gnu", features=("cblas",))

        paths = build_from_source(environment, runner)

        tree = os.path.join(self.out_dir, "source_x86_64-unknown-linux-gnu")
        self.assertTrue(os.path.isfile(os.path.join(tree, "Makefile")))
        make_call, install_call = runner.run.call_args_list
        self.assertEqual(make_call.args[0], [
            "make", "libs", "netlib", "shared",
            "BINARY=64", "YES_CBLAS=1", "NO_LAPACKE=1",
            "TARGET=x86_64",
        ])
        self.assertEqual(make_call.kwargs["cwd"], tree)
        self.assertEqual(install_call.args[0], ["make", "install", f"DESTDIR={self.out_dir}"])
        self.assertEqual(install_call.kwargs["cwd"], tree)
        self.assertEqual(paths, [os.path.join(self.out_dir, INSTALL_LIB_SUBDIR)])

    def test_ios_arm64_scenario(self, *mocks):
        runner = MagicMock()
        runner.output_text.return_value = "/SDKs/iPhoneOS.sdk\n"
        environment = self.environment("aarch64-apple-ios", "ios", features=("cblas", "lapacke"))

        build_from_source(environment, runner)

        command = runner.run.call_args_list[0].args[0]
        self.assertIn("BINARY=64", command)
        self.assertIn("TARGET=ARMV8", command)
        self.assertIn("HOSTCC=clang", command)
        self.assertIn("CC=clang", command)
        self.assertIn("CFLAGS=-isysroot /SDKs/iPhoneOS.sdk -arch arm64", command)
        self.assertIn("NOFORTRAN=1", command)

    def test_user_arguments_jobs_and_compiler_overrides(self, *mocks):
        runner = MagicMock()
        variables = {
            "OPENBLAS_ARGS": "DYNAMIC_ARCH=1 NO_AFFINITY=1",
            "NUM_JOBS": "12",
            "OPENBLAS_CC": "gcc-13",
            "OPENBLAS_FC": "gfortran-13",
            "OPENBLAS_HOSTCC": "cc",
        }
        environment = self.environment("i686-unknown-linux-gnu", "linux", "gnu", variables=variables, pointer_width=32)

        build_from_source(environment, runner)

        self.assertEqual(runner.run.call_args_list[0].args[0], [
            "make", "libs", "netlib", "shared",
            "BINARY=32", "NO_CBLAS=1", "NO_LAPACKE=1",
            "DYNAMIC_ARCH=1", "NO_AFFINITY=1",
            "-j12",
            "TARGET=x86",
            "CC=gcc-13", "FC=gfortran-13", "HOSTCC=cc",
        ])

    def test_cached_tree_lives_in_cache_dir_and_is_reused(self, *mocks):
        cache_dir = os.path.join(self.project, "cache")
        environment = self.environment(
            "x86_64-unknown-linux-gnu", "linux", "gnu", features=("cache",),
            variables={"OPENBLAS_TARGET": "SkylakeX"}, cache_dir=cache_dir,
        )
        runner = MagicMock()

        build_from_source(environment, runner)
        tree = os.path.join(cache_dir, "source_skylakex")
        self.assertTrue(os.path.isdir(tree))
        self.assertIn("TARGET=SkylakeX", runner.run.call_args_list[0].args[0])

        with patch('blasbuilder.utils.file_manager.shutil.copytree') as mock_copytree:
            build_from_source(environment, MagicMock())
            mock_copytree.assert_not_called()

    def test_msvc_is_rejected_for_every_architecture(self, *mocks):
        for triple in ("x86_64-pc-windows-msvc", "i686-pc-windows-msvc", "aarch64-pc-windows-msvc"):
            with self.subTest(triple=triple):
                runner = MagicMock()
                environment = self.environment(triple, "windows", "msvc")
                with self.assertRaises(ConfigurationError) as ctx:
                    build_from_source(environment, runner)
                self.assertIn("'system' feature", ctx.exception.format_message())
                runner.run.assert_not_called()

    def test_failed_make_stops_before_install(self, *mocks):
        runner = MagicMock()
        runner.run.side_effect = ExternalToolError(["make", "libs"], "exit status: 2")
        environment = self.environment("x86_64-unknown-linux-gnu", "linux", "gnu")

        with self.assertRaises(ExternalToolError):
            build_from_source(environment, runner)
        self.assertEqual(runner.run.call_count, 1)

    def test_source_tree_location(self, *mocks):
        environment = self.environment("x86_64-Unknown-Linux-Gnu", "linux", "gnu")
        params = resolve_build_parameters(environment.target, environment.overrides, MagicMock())
        self.assertEqual(source_tree_location(environment, params), os.path.join(self.out_dir, "source_x86_64-unknown-linux-gnu"))
        self.assertEqual(make_command(environment, params)[-1], "TARGET=x86_64")


@patch('blasbuilder.discovery.logger')
class TestResolve(unittest.TestCase):

    def environment(self, os_name, features, variables=None):
        with patch('blasbuilder.environment.logger'):
            return snapshot(
                "/project", variables=variables or {}, config={},
                options={"os": os_name, "env": "", "arch": "aarch64"}, cli_features=features,
            )

    def test_macos_system_scenario(self, mock_logger):
        for features, kind in ((("system",), LinkKind.DYNAMIC), (("system", "static"), LinkKind.STATIC)):
            with self.subTest(features=features):
                directive = resolve(self.environment("macos", features), MagicMock())
                self.assertEqual(directive.search_paths, ("/usr/local/opt/openblas/lib",))
                self.assertIs(directive.link_kind, kind)
                self.assertEqual(directive.library_name, "openblas")

    @patch('blasbuilder.builder.build_from_source')
    def test_failed_discovery_does_not_fall_back_to_source(self, mock_build_from_source, mock_logger):
        with self.assertRaises(ConfigurationError):
            resolve(self.environment("android", ("system",)), MagicMock())
        mock_build_from_source.assert_not_called()

    @patch('blasbuilder.builder.discover')
    @patch('blasbuilder.builder.build_from_source', return_value=["/out/opt/OpenBLAS/lib"])
    def test_source_branch(self, mock_build_from_source, mock_discover, mock_logger):
        directive = resolve(self.environment("android", ("static",)), MagicMock())
        mock_discover.assert_not_called()
        self.assertEqual(directive.search_paths, ("/out/opt/OpenBLAS/lib",))
        self.assertIs(directive.link_kind, LinkKind.STATIC)

if __name__ == '__main__':
    unittest.main()
