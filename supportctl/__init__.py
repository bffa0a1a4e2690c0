"""supportctl - manage limited support reasons on OCM clusters."""

__version__ = "0.1.0"
