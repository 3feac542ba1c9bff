[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tinyredis"
version = "0.1.0"
description = "Building blocks for a Redis-style server: RESP reply types, a streaming RESP parser, a threaded TCP server and an asynchronous logger."
requires-python = ">=3.10"
dependencies = []
keywords = ["redis", "resp", "protocol", "parser", "tcp", "server", "logging"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["tinyredis"]

[tool.pytest.ini_options]
addopts = "-ra"
