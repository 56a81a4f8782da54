"""Tests for dependency hygiene.

Validates:
- runtime dependencies are pinned with a minimum version
- the Ethereum stack is web3, with its codec packages left to web3
- [test] optional deps carry the test tooling
- every third-party import in the package is declared
"""

import ast
import re
import tomllib
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
PACKAGE = ROOT / "nft_market_harness"

# import name -> distribution name
_DISTRIBUTIONS = {
    "httpx": "httpx",
    "web3": "web3",
}


def _requirement_name(requirement):
    return re.split(r"[\[<>=!~ ]", requirement, maxsplit=1)[0].lower()


class TestPyproject:
    def setup_method(self):
        with open(ROOT / "pyproject.toml", "rb") as f:
            self.data = tomllib.load(f)
        self.deps = self.data["project"]["dependencies"]
        self.test_deps = self.data["project"]["optional-dependencies"]["test"]

    def test_project_name(self):
        assert self.data["project"]["name"] == "nft-market-harness"

    def test_project_version(self):
        assert self.data["project"]["version"] == "0.1.0"

    def test_build_system_is_hatchling(self):
        assert self.data["build-system"]["build-backend"] == "hatchling.build"

    def test_runtime_deps_have_minimum_versions(self):
        for dep in self.deps:
            assert ">=" in dep, f"{dep} must be pinned with a minimum version"

    def test_httpx_pinned_with_minimum(self):
        assert "httpx>=0.27" in self.deps

    def test_web3_pinned_with_minimum(self):
        assert "web3>=7.0" in self.deps

    def test_codec_packages_come_through_web3(self):
        names = {_requirement_name(d) for d in self.deps}
        assert not names & {"eth-abi", "eth-hash", "eth-utils"}

    def test_test_deps(self):
        names = {_requirement_name(d) for d in self.test_deps}
        assert {"pytest", "pytest-asyncio", "respx", "pytest-mock", "pyyaml", "eth-abi"} <= names

    def test_console_script(self):
        scripts = self.data["project"]["scripts"]
        assert scripts["nft-market-harness"] == "nft_market_harness.__main__:main"

    def test_no_test_tooling_in_runtime_deps(self):
        names = {_requirement_name(d) for d in self.deps}
        assert not names & {"pytest", "pytest-asyncio", "respx", "pytest-mock"}


class TestImportsDeclared:
    """Every third-party module the package imports must be a declared dependency."""

    def setup_method(self):
        with open(ROOT / "pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        self.declared = {_requirement_name(d) for d in data["project"]["dependencies"]}

    def _top_level_imports(self):
        found = set()
        for path in PACKAGE.glob("*.py"):
            tree = ast.parse(path.read_text())
            for node in ast.walk(tree):
                if isinstance(node, ast.Import):
                    found.update(alias.name.split(".")[0] for alias in node.names)
                elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
                    found.add(node.module.split(".")[0])
        return found

    def test_third_party_imports_are_declared(self):
        third_party = self._top_level_imports() & set(_DISTRIBUTIONS)
        assert third_party, "package should import its ledger stack"
        for module in third_party:
            assert _DISTRIBUTIONS[module] in self.declared, f"{module} is not declared"

    def test_no_unexpected_third_party_imports(self):
        stdlib = {
            "argparse",
            "asyncio",
            "dataclasses",
            "decimal",
            "json",
            "logging",
            "os",
            "pathlib",
            "sys",
            "typing",
        }
        unexpected = self._top_level_imports() - stdlib - set(_DISTRIBUTIONS)
        assert not unexpected, f"undeclared imports: {sorted(unexpected)}"
