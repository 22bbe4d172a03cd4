"""plugctl - extension manager for command-line tools"""

__version__ = "0.1.0"
