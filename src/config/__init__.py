"""Configuration package for the clinical knowledge graph."""

from .knowledge_config import KnowledgeGraphConfig, get_config, reload_config

__all__ = ["KnowledgeGraphConfig", "get_config", "reload_config"]
