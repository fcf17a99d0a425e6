[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "shipwatch"
version = "0.1.0"
description = "Building blocks for keeping running containers up to date with their newest images"
requires-python = ">=3.10"
dependencies = []
keywords = ["containers", "docker", "updates", "automation", "images"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["shipwatch"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
