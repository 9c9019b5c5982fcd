"""API Workbench - terminal client for HTTP requests and SQL queries."""

__version__ = "0.4.0"
