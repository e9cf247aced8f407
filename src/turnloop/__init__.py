"""turnloop: routed, tool-augmented chat turns over a streaming LLM API."""

__version__ = "0.1.0"
