"""tabwright: command-driven browser automation agent."""

__version__ = "0.1.0"
