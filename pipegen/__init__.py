"""Generate GitLab CI pipelines from repository analysis and manual settings."""

__version__ = "0.1.0"
