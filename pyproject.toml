[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chapterbook"
version = "0.1.0"
description = "Load Markdown books from a SUMMARY.md outline and plan their preprocessing and rendering steps"
requires-python = ">=3.11"
dependencies = [
    "markdown-it-py",
]
keywords = ["markdown", "book", "summary", "documentation", "preprocessor"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Text Processing :: Markup :: Markdown",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
chapterbook-nop = "chapterbook.nop:main"

[tool.hatch.build.targets.wheel]
packages = ["chapterbook"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
