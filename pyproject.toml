[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "autorig"
version = "0.1.0"
description = "Building blocks for automatic rigging of 3D meshes: skeleton embedding, bone-heat skin weights and foot-tracking motion filtering"
requires-python = ">=3.10"
dependencies = [
    "numpy",
    "scipy",
]
keywords = [
    "rigging",
    "skinning",
    "skeleton",
    "mesh",
    "animation",
    "medial-surface",
    "bone-heat",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Graphics :: 3D Modeling",
    "Topic :: Scientific/Engineering :: Mathematics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["autorig"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
