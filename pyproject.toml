[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "governor"
version = "0.0.1"
description = "Structured Go project tooling: check and audit pipelines, stored run results and tool handlers for agents."
requires-python = ">=3.10"
keywords = ["go", "lint", "staticcheck", "coverage", "audit", "quality", "tooling"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Quality Assurance",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "pyyaml>=6.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[tool.hatch.build.targets.wheel]
packages = ["governor"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
