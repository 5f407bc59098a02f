[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "obscura"
version = "0.1.0"
description = "Building blocks for a headless browser: cookie jar, robots.txt rules, request/response records, interceptor actions and an MCP tool server."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "headless-browser",
    "cookies",
    "robots-txt",
    "mcp",
    "json-rpc",
    "scraping",
]
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
    "Framework :: AsyncIO",
    "Topic :: Internet :: WWW/HTTP :: Browsers",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "respx",
]

[tool.hatch.build.targets.wheel]
packages = ["obscura"]

[tool.hatch.build.targets.sdist]
include = [
    "obscura",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
check_untyped_defs = true
