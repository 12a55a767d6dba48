[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "renkernel"
version = "0.1.0"
description = "Models of a small teaching kernel: boot, buddy and slab memory managers, PID bitmap, text console, PS/2 keyboard, interrupt lines, SD card image and a FAT32 file system"
requires-python = ">=3.10"
dependencies = []
keywords = ["kernel", "fat32", "buddy-allocator", "slab", "operating-system", "education"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System Kernels",
    "Topic :: System :: Filesystems",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["renkernel"]

[tool.pytest.ini_options]
addopts = "-ra"
