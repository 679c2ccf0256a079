[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sockdemo"
version = "0.1.0"
description = "TCP echo servers and clients plus a framed, checksummed file upload service"
requires-python = ">=3.10"
dependencies = []
keywords = ["tcp", "sockets", "echo", "asyncio", "file-transfer", "networking"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
sockdemo-echo-server-sync = "sockdemo.echo_sync:server_main"
sockdemo-echo-client-sync = "sockdemo.echo_sync:client_main"
sockdemo-echo-server-async = "sockdemo.echo_async:server_main"
sockdemo-echo-server-threaded = "sockdemo.echo_async:multithreaded_main"
sockdemo-echo-client-async = "sockdemo.echo_async:client_main"
sockdemo-file-server = "sockdemo.server:main"
sockdemo-file-client = "sockdemo.client:main"

[tool.hatch.build.targets.wheel]
packages = ["sockdemo"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
