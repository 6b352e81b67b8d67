[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "companion_store"
version = "0.1.0"
description = "SQLite persistence layer for an AI companion engine: chat history, layered long-term memory, affinity, user insight, personas, wallet links and persona ownership."
requires-python = ">=3.10"
dependencies = []
keywords = ["companion", "memory", "persistence", "chat", "sqlite", "embeddings"]
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
    "Topic :: Database",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["companion_store"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]
