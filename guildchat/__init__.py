"""Line-based TCP chat server and terminal client with guilds and channels."""

__version__ = "0.1.0"
__all__ = ["__version__"]