"""Mirror ThingsBoard configuration between its REST API and a local file tree."""

__version__ = "0.1.0"
