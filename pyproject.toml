[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "txbot"
version = "0.1.0"
description = "Data fetching, caching, enrichment and filtering core for a blockchain transactions notification bot"
requires-python = ">=3.10"
keywords = ["cosmos", "blockchain", "transactions", "bot", "notifications", "ibc", "filtering"]
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
    "Topic :: Communications :: Chat",
]
dependencies = [
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["txbot"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
