"""Berkeley clock synchronization: a coordinator and its peers."""

__version__ = "0.1.0"
