"""labelsync: annotation synchronization for robot-demonstration episodes."""

__version__ = "0.1.0"
