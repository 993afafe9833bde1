import os
import tempfile
import unittest
from unittest.mock import patch
from acmake.errors import RequiredPackageNotFound
from acmake.quirks import QUIRKS
from acmake.registry import Target
from acmake.resolver import FOUND_TARGET, PackageResolver, target_spellings
from acmake.utils.find_package import PackageFinder
from acmake.utils.pkg_config import ModuleInfo


class FakeFinder:
    """Stands in for the native package search.

    packages maps a package name to a function called with the evaluator;
    configs does the same for config-mode retries.
    """

    def __init__(self, packages=None, configs=None):
        self.packages = packages or {}
        self.configs = configs or {}
        self.calls = []

    def find_package(self, name, evaluator, mode=None):
        self.calls.append((name, mode))
        table = self.configs if mode == "config" else self.packages
        define = table.get(name)
        if define is None:
            return False
        define(evaluator)
        evaluator.scope.set(f"{name}_FOUND", "TRUE")
        return True


class FakeModules:

    def __init__(self, modules=None):
        self.modules = modules or {}
        self.calls = []

    def query(self, name):
        self.calls.append(name)
        return self.modules.get(name)


def defines(*names, links=None):
    def define(evaluator):
        for name in names:
            evaluator.scope.targets.add(Target(name, kind="UNKNOWN", link_libraries=(links or {}).get(name)))
    return define


class ResolverTestCase(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        patcher = patch("acmake.resolver.logger")
        self.mock_logger = patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        self.tmp.cleanup()

    def make_resolver(self, packages=None, modules=None, configs=None, quirks=None):
        self.finder = FakeFinder(packages, configs)
        self.modules = FakeModules(modules)
        return PackageResolver(finder=self.finder, modules=self.modules,
                               search_paths=[self.tmp.name],
                               quirks={} if quirks is None else quirks)


class TestTargetSpellings(unittest.TestCase):

    def test_plain_name(self):
        self.assertEqual(target_spellings("Jansson"), [
            "Jansson", "Jansson::Jansson", "Jansson::static", "Jansson::shared",
            "Jansson::debug", "jansson::jansson",
        ])

    def test_qualified_name(self):
        self.assertEqual(target_spellings("OpenSSL::SSL"), ["OpenSSL::SSL"])


class TestResolution(ResolverTestCase):

    def test_second_resolution_short_circuits(self):
        resolver = self.make_resolver({"AcmkFoo": defines("AcmkFoo::AcmkFoo")})
        first = resolver.resolve("AcmkFoo")
        second = resolver.resolve("AcmkFoo")
        self.assertTrue(first.found)
        self.assertIs(second, first)
        self.assertEqual(self.finder.calls, [("AcmkFoo", None)])

    def test_cached_miss_is_not_retried(self):
        resolver = self.make_resolver()
        self.assertFalse(resolver.resolve("acmk-missing").found)
        self.assertFalse(resolver.resolve("acmk-missing").found)
        self.assertEqual(self.finder.calls, [("acmk-missing", None)])

    def test_existing_target_is_reused(self):
        resolver = self.make_resolver()
        resolver.targets.add(Target("acmkpre::static", kind="STATIC"))
        result = resolver.resolve("acmkpre")
        self.assertEqual(result.strategy, "fast-path")
        self.assertEqual(result.targets, ["acmkpre::static"])
        self.assertEqual(self.finder.calls, [])

    def test_required_missing_package_raises(self):
        resolver = self.make_resolver()
        with self.assertRaises(RequiredPackageNotFound) as cm:
            resolver.resolve("acmk-nowhere", required=True)
        self.assertEqual(cm.exception.package_name, "acmk-nowhere")
        self.assertIn('"acmk-nowhere"', str(cm.exception))

    def test_optional_missing_package(self):
        resolver = self.make_resolver()
        result = resolver.resolve("acmk-nowhere")
        self.assertFalse(result)
        self.assertFalse(resolver.is_found("acmk-nowhere"))


class TestQualifiedTargets(ResolverTestCase):

    def test_found_through_prefix(self):
        resolver = self.make_resolver({"AcmkNs": defines("AcmkNs::thing")})
        result = resolver.resolve("AcmkNs::thing")
        self.assertTrue(result.found)
        self.assertEqual(result.package, "AcmkNs")
        self.assertEqual(result.targets, ["AcmkNs::thing"])
        self.assertTrue(resolver.is_found("AcmkNs"))

    def test_found_through_suffix(self):
        resolver = self.make_resolver({"acmkjwt": defines("AcmkLib::acmkjwt")})
        result = resolver.resolve("AcmkLib::acmkjwt")
        self.assertTrue(result.found)
        self.assertEqual(result.package, "acmkjwt")
        self.assertEqual([c[0] for c in self.finder.calls], ["AcmkLib", "acmkjwt"])

    def test_never_falls_back_to_module_search(self):
        resolver = self.make_resolver(
            {"AcmkNs": defines("AcmkNs::other")},
            modules={"AcmkNs::thing": ModuleInfo("AcmkNs::thing", libraries=["thing"])},
        )
        result = resolver.resolve("AcmkNs::thing")
        self.assertFalse(result.found)
        self.assertEqual(result.strategy, "qualified-target")
        self.assertEqual(self.modules.calls, [])

    def test_found_through_config_scan(self):
        config_dir = os.path.join(self.tmp.name, "acmkscanned-1.0")
        os.makedirs(config_dir)
        with open(os.path.join(config_dir, "acmkscanned-config.cmake"), "w") as f:
            f.write("add_library(acmkscanned::core STATIC IMPORTED)\n")
        resolver = self.make_resolver()
        result = resolver.resolve("acmkscanned::core")
        self.assertTrue(result.found)
        self.assertEqual(result.strategy, "filesystem-scan")


class TestAutoAlias(ResolverTestCase):

    def test_single_namespaced_target_is_aliased(self):
        resolver = self.make_resolver({"AcmkOne": defines("AcmkOne::core")})
        resolver.resolve("AcmkOne")
        self.assertTrue(resolver.targets.exists("AcmkOne::AcmkOne"))
        self.assertEqual(resolver.targets.get("AcmkOne::AcmkOne").name, "AcmkOne::core")

    def test_ambiguous_targets_are_not_aliased(self):
        resolver = self.make_resolver({"AcmkTwo": defines("AcmkTwo::a", "AcmkTwo::b")})
        result = resolver.resolve("AcmkTwo")
        self.assertTrue(result.found)
        self.assertFalse(resolver.targets.exists("AcmkTwo::AcmkTwo"))

    def test_unrelated_namespace_is_not_aliased(self):
        resolver = self.make_resolver({"zlib": defines("ZLIB::ZLIB")})
        resolver.resolve("zlib")
        self.assertFalse(resolver.targets.exists("zlib::zlib"))


class TestScenarios(ResolverTestCase):

    def test_native_zlib(self):
        resolver = self.make_resolver({"zlib": defines("ZLIB::ZLIB")})
        with patch.object(PackageResolver, "config_files") as mock_config_files:
            result = resolver.resolve("zlib", required=True)
        self.assertEqual(result.strategy, "native")
        self.assertIn("ZLIB::ZLIB", result.targets)
        flags = resolver.cache.flags()
        self.assertTrue(flags["ZLIB_FOUND"])
        self.assertTrue(flags["zlib_FOUND"])
        mock_config_files.assert_not_called()
        self.assertEqual(self.modules.calls, [])

    def test_module_discovery_synthesizes_target(self):
        lib_dir = os.path.join(self.tmp.name, "lib")
        os.makedirs(lib_dir)
        library = os.path.join(lib_dir, "libjansson.so")
        open(library, "w").close()
        info = ModuleInfo("jansson", version="2.14", include_dirs=["/opt/jansson/include"],
                          libraries=["jansson"], library_dirs=[lib_dir])
        resolver = self.make_resolver(modules={"jansson": info})

        result = resolver.resolve("jansson", required=True)

        self.assertEqual(result.strategy, "module")
        self.assertEqual(result.status, FOUND_TARGET)
        target = resolver.targets.get("jansson::jansson")
        self.assertEqual(target.include_dirs, ["/opt/jansson/include"])
        self.assertEqual(target.link_libraries, [library])
        self.assertEqual(result.libraries, [library])
        self.assertEqual(resolver.scope.get("JANSSON_INCLUDE_DIRS"), "/opt/jansson/include")
        self.assertEqual(resolver.scope.get("JANSSON_LIBRARIES"), "jansson")
        self.assertEqual(resolver.scope.get("jansson_VERSION"), "2.14")
        self.assertTrue(resolver.is_found("JANSSON"))

    def test_filesystem_scan(self):
        config_dir = os.path.join(self.tmp.name, "acmkfs-2.0")
        os.makedirs(config_dir)
        with open(os.path.join(config_dir, "acmkfs-config.cmake"), "w") as f:
            f.write("add_library(acmkfs::acmkfs INTERFACE IMPORTED)\n"
                    'set_target_properties(acmkfs::acmkfs PROPERTIES INTERFACE_INCLUDE_DIRECTORIES "/opt/acmkfs/include")\n')
        resolver = self.make_resolver()
        result = resolver.resolve("acmkfs", required=True)
        self.assertEqual(result.strategy, "filesystem-scan")
        self.assertEqual(result.include_dirs, ["/opt/acmkfs/include"])

    def test_empty_module_gives_placeholder(self):
        resolver = self.make_resolver(modules={"acmkflags": ModuleInfo("acmkflags", cflags=["-DACMK"])})
        result = resolver.resolve("acmkflags", required=True)
        self.assertEqual(result.strategy, "module")
        self.assertTrue(resolver.targets.exists("acmkflags::acmkflags"))
        messages = [c.args[0] for c in self.mock_logger.debug.call_args_list]
        self.assertTrue(any("empty placeholder" in m for m in messages))

    def test_pkg_config_references_are_healed(self):
        info = ModuleInfo("acmkzstd", include_dirs=["/opt/zstd/include"], libraries=["-pthread"])
        resolver = self.make_resolver(
            {"AcmkHeal": defines("AcmkHeal::AcmkHeal", links={"AcmkHeal::AcmkHeal": "PkgConfig::acmkzstd"})},
            modules={"acmkzstd": info},
        )
        resolver.resolve("AcmkHeal")
        healed = resolver.targets.get("PkgConfig::acmkzstd")
        self.assertIsNotNone(healed)
        self.assertEqual(healed.include_dirs, ["/opt/zstd/include"])
        self.assertEqual(healed.link_libraries, ["-pthread"])

    def test_dependency_cycle_terminates(self):
        def package_a(evaluator):
            evaluator.run_source("find_dependency(AcmkB)\nadd_library(AcmkA::AcmkA INTERFACE IMPORTED)\n")

        def package_b(evaluator):
            evaluator.run_source("find_dependency(AcmkA)\nadd_library(AcmkB::AcmkB INTERFACE IMPORTED)\n")

        resolver = self.make_resolver({"AcmkA": package_a, "AcmkB": package_b})
        self.assertTrue(resolver.resolve("AcmkA").found)
        self.assertTrue(resolver.is_found("AcmkB"))
        self.assertEqual([c[0] for c in self.finder.calls], ["AcmkA", "AcmkB"])

    def test_dependency_cycle_through_config_files(self):
        for name, other in (("AcmkA", "AcmkB"), ("AcmkB", "AcmkA")):
            directory = os.path.join(self.tmp.name, "lib", "cmake", name)
            os.makedirs(directory)
            with open(os.path.join(directory, f"{name}Config.cmake"), "w") as f:
                f.write(f"find_dependency({other})\nadd_library({name}::{name} INTERFACE IMPORTED)\n")
        resolver = PackageResolver(finder=PackageFinder(prefixes=[self.tmp.name]), modules=FakeModules(),
                                   search_paths=[self.tmp.name], quirks={})

        result = resolver.resolve("AcmkA", required=True)

        self.assertEqual(result.status, FOUND_TARGET)
        self.assertEqual(resolver.scope.get("AcmkA_FOUND"), "TRUE")
        self.assertTrue(resolver.is_found("AcmkB"))
        self.assertTrue(resolver.targets.exists("AcmkB::AcmkB"))


class TestQuirks(ResolverTestCase):

    def test_libjwt_alias_to_upstream_target(self):
        resolver = self.make_resolver({"libjwt": defines("LibJWT::jwt")}, quirks=QUIRKS)
        resolver.resolve("libjwt")
        self.assertEqual(resolver.targets.get("libjwt::libjwt").name, "LibJWT::jwt")
        self.assertFalse(resolver.targets.exists("jwt"))

    def test_libjwt_imported_fallback(self):
        resolver = self.make_resolver({"libjwt": lambda evaluator: None}, quirks=QUIRKS)
        resolver.resolve("libjwt")
        target = resolver.targets.get("libjwt::libjwt")
        self.assertEqual(target.name, "jwt")
        self.assertEqual(target.location, "/usr/local/opt/libjwt/lib/libjwt.dylib")
        self.assertEqual(target.include_dirs, ["/usr/local/opt/libjwt/include"])

    def test_openssl_config_mode_retry(self):
        resolver = self.make_resolver(
            {"OpenSSL": defines("OpenSSL::SSL")},
            configs={"OpenSSL": defines("OpenSSL::Crypto")},
            quirks=QUIRKS,
        )
        resolver.resolve("OpenSSL", required=True)
        self.assertIn(("OpenSSL", "config"), self.finder.calls)
        self.assertTrue(resolver.targets.exists("OpenSSL::Crypto"))

    def test_openssl_without_retry_when_crypto_present(self):
        resolver = self.make_resolver({"OpenSSL": defines("OpenSSL::SSL", "OpenSSL::Crypto")}, quirks=QUIRKS)
        resolver.resolve("OpenSSL")
        self.assertEqual(self.finder.calls, [("OpenSSL", None)])


if __name__ == '__main__':
    unittest.main()
