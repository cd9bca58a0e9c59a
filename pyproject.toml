[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ncclflow"
version = "0.1.0"
description = "Ring, tree and NVLS channel construction and flow-model generation for simulated NCCL-style collectives"
requires-python = ">=3.10"
dependencies = []
keywords = ["nccl", "collectives", "simulation", "allreduce", "ring", "tree", "nvls"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ncclflow"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
