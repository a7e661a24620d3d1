[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "outworld"
version = "0.1.0"
description = "Data file readers, decoders and software rendering for a classic polygon-based action adventure engine"
requires-python = ">=3.10"
dependencies = []
keywords = ["game", "engine", "resources", "decoder", "retro", "adventure"]
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
    "Topic :: Games/Entertainment :: Side-Scrolling/Arcade Games",
    "Topic :: Multimedia :: Graphics",
    "Topic :: Multimedia :: Sound/Audio",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["outworld"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
