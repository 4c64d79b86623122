"""logid: look up log records by logid across regional log services."""

__version__ = "0.1.0"
