[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mrtnet"
version = "0.1.0"
description = "Building blocks of a small overlay network: topology parsing, routing tables and a reliable Go-Back-N transport"
requires-python = ">=3.10"
dependencies = []
keywords = ["overlay", "distance-vector", "routing", "transport", "go-back-n", "networking"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["mrtnet"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
