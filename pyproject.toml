[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "servicekit"
version = "2.0.0"
description = "Toolkit for building services: endpoint middleware, an HTTP transport, metrics helpers and connection management"
requires-python = ">=3.10"
dependencies = []
keywords = ["microservices", "endpoint", "middleware", "rate-limit", "http", "wsgi", "metrics"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["servicekit"]

[tool.hatch.build.targets.sdist]
include = ["servicekit", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
