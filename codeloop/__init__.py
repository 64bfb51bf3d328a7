"""CodeLoop - a tool-using agent session loop for coding tasks."""

__version__ = "0.1.0"
