[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pingcheck"
version = "0.1.0"
description = "ICMP ping checks against configured targets, reported as connectivity metrics"
requires-python = ">=3.10"
dependencies = []
keywords = ["ping", "icmp", "monitoring", "metrics", "latency", "packet-loss"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
pingcheck = "pingcheck.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["pingcheck"]

[tool.pytest.ini_options]
addopts = "-ra"
