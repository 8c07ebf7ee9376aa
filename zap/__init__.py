"""zap: Markdown issue files with YAML front-matter, kept in a .issues directory."""

__version__ = "0.1.0"
