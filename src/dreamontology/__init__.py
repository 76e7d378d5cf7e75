"""Dream Ontology: symbol catalog service with REST and MCP surfaces."""

__version__ = "0.1.0"
