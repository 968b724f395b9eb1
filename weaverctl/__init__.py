"""weaverctl - node software provisioning CLI."""

__version__ = "0.1.0"
