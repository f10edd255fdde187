[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "topgrader"
version = "0.1.0"
description = "Building blocks for upgrading a machine's tools: TOML configuration, dry-run aware command execution, step running and reporting"
requires-python = ">=3.11"
dependencies = []
keywords = [
    "upgrade",
    "update",
    "package-manager",
    "system-administration",
    "automation",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Operating System :: MacOS",
    "Operating System :: Microsoft :: Windows",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["topgrader"]

[tool.hatch.build.targets.sdist]
include = ["topgrader", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"
