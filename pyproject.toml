[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hdrhist"
version = "0.1.0"
description = "High Dynamic Range histograms with compressed encoding and histogram log reading and writing"
requires-python = ">=3.10"
dependencies = []
keywords = ["histogram", "hdr", "latency", "percentile", "metrics"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Topic :: System :: Benchmark",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
hdr-decoder = "hdrhist.logreader:main"

[tool.hatch.build.targets.wheel]
packages = ["hdrhist"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
