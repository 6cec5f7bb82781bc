[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "zupdate"
version = "2.0.0"
description = "Online updater that fetches an XML manifest, picks the cheapest chain of patches, verifies them by MD5 and hands them to a patch command"
requires-python = ">=3.10"
dependencies = []
keywords = ["updater", "patch", "manifest", "md5", "crc32", "aes", "bcj2", "software distribution"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Software Distribution",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
zupdate = "zupdate.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["zupdate"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
