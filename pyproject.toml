[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "provider_gcp"
version = "0.1.0"
description = "GCP provider logic for cluster extensions: bastion hosts, DNS records, infrastructure validation and health checks."
requires-python = ">=3.10"
dependencies = []
keywords = ["gcp", "kubernetes", "bastion", "dns", "firewall", "cluster"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Clustering",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["provider_gcp"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
