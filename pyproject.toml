[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "controlrelay"
version = "0.1.0"
description = "Rendezvous relay and host-side helpers for a remote desktop control system"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "relay",
    "remote-control",
    "remote-desktop",
    "tunnel",
    "file-transfer",
    "screen-capture",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Intended Audience :: System Administrators",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
controlrelay-relay = "controlrelay.relay:main"

[tool.hatch.build.targets.wheel]
packages = ["controlrelay"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
