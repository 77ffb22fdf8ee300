"""tagrel: build, release and publish docs from a pushed version tag."""

__version__ = "0.1.0"
