[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "retro"
version = "0.1.0"
description = "Runs configurable tasks across many EVM wallets, with retries, randomised delays, resumable state and transaction logging"
requires-python = ">=3.11"
keywords = ["evm", "ethereum", "wallets", "automation", "tasks", "sqlite", "json-rpc"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Office/Business :: Financial",
]
dependencies = [
    "pyyaml>=6.0",
    "httpx>=0.25",
    "aiosqlite>=0.19",
    "pycryptodome>=3.19",
    "python-dotenv>=1.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "pytest-asyncio>=0.23",
    "respx>=0.20",
]

[project.scripts]
retro = "retro.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["retro"]

[tool.hatch.build.targets.sdist]
include = ["retro", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
ignore_missing_imports = true
