"""Models of a small teaching kernel: memory managers, devices and a FAT32 file system."""

__version__ = "0.1.0"