"""Configuration file for Nox."""

import sys
from pathlib import Path
from typing import Generator

import nox
from packaging.specifiers import SpecifierSet
from packaging.version import Version

# newest python release to test against
_LATEST_MINOR = 13

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


def get_python_versions() -> Generator[str, None, None]:
    """Get all python versions this package is compatible with."""
    with Path("pyproject.toml").open("rb") as f:
        pyproject_data = tomllib.load(f)

    specifier = SpecifierSet(pyproject_data["project"]["requires-python"])

    for v_minor in range(_LATEST_MINOR + 1):
        version = Version(f"3.{v_minor}")
        if version in specifier:
            yield str(version)


@nox.session(python=list(get_python_versions()))
def test(session: nox.Session) -> None:
    """Run unit tests."""
    session.install(".[test]")
    session.run("pytest")
