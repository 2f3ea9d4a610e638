[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chartingest"
version = "1.0.0"
description = "Load S-57 electronic navigational charts into a PostGIS database"
requires-python = ">=3.10"
dependencies = []
keywords = ["s57", "enc", "nautical charts", "postgis", "gis", "geojson"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: GIS",
    "Topic :: Database",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
chartingest = "chartingest.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["chartingest"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
