[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "portswitch"
version = "0.2.0"
description = "A local TCP port switcher: forward one listening port to one of several saved targets."
requires-python = ">=3.10"
dependencies = []
keywords = ["proxy", "tcp", "port-forwarding", "dynamic-proxy", "tkinter"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: X11 Applications",
    "Environment :: MacOS X",
    "Environment :: Win32 (MS Windows)",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
]

[project.optional-dependencies]
test = ["pytest", "pytest-asyncio"]

[project.scripts]
portswitch = "portswitch.gui:main"

[tool.hatch.build.targets.wheel]
packages = ["portswitch"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
