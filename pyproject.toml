[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "guildchat"
version = "0.1.0"
description = "A small line-based chat server and terminal client organised into guilds and channels"
requires-python = ">=3.10"
dependencies = []
keywords = ["chat", "server", "client", "tcp", "guilds", "channels"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
guildchat-server = "guildchat.server:main"
guildchat-client = "guildchat.client:main"

[tool.hatch.build.targets.wheel]
packages = ["guildchat"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
