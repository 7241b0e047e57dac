"""
Knowledge Graph Configuration

Loads configuration from config/knowledge_graph.yaml.
Provides typed dataclasses for the scoring weights, auto-linker thresholds,
semantic resolution limits, learning loop rules and snapshot storage.

The scoring weights are calibration constants, not derived values: the
defaults reproduce the reference behaviour and can be tuned per deployment.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


@dataclass
class ScoringConfig:
    """Weights of the inference convolution."""
    presence_score: float = 1.0
    pivot_bonus: float = 15.0
    syndrome_bonus: float = 10.0
    keyword_bonus: float = 5.0
    keyword_min_length: int = 4  # tokens of length <= 3 are ignored
    expansion_top_n: int = 5


@dataclass
class ModalityConfig:
    """Modalities synthesized during ingestion."""
    qualifier_class: str = "M3"
    qualifier_score: float = 8.0
    present_class: str = "M1"
    present_score: float = 4.0
    present_label: str = "Present"


@dataclass
class AutoLinkConfig:
    """Similarity-based node linking."""
    similarity_threshold: float = 0.25
    trigger_bonus: float = 0.5
    substring_bonus: float = 0.8
    max_links: int = 5


@dataclass
class ResolutionConfig:
    """Transitive semantic label resolution."""
    max_hops: int = 6


@dataclass
class LearningConfig:
    """Concept learning loop."""
    promotion_min_count: int = 2


@dataclass
class StorageConfig:
    """Snapshot persistence."""
    snapshot_path: str = "data/knowledge_graph.json"


def _section(cls, data: Optional[Dict[str, Any]]):
    """Build a config section, ignoring unknown keys."""
    data = data or {}
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class KnowledgeGraphConfig:
    """Complete knowledge graph configuration."""
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    modalities: ModalityConfig = field(default_factory=ModalityConfig)
    auto_link: AutoLinkConfig = field(default_factory=AutoLinkConfig)
    resolution: ResolutionConfig = field(default_factory=ResolutionConfig)
    learning: LearningConfig = field(default_factory=LearningConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeGraphConfig":
        """Create config from dictionary (parsed YAML)."""
        return cls(
            scoring=_section(ScoringConfig, data.get("scoring")),
            modalities=_section(ModalityConfig, data.get("modalities")),
            auto_link=_section(AutoLinkConfig, data.get("auto_link")),
            resolution=_section(ResolutionConfig, data.get("resolution")),
            learning=_section(LearningConfig, data.get("learning")),
            storage=_section(StorageConfig, data.get("storage")),
            log_level=data.get("log_level", "INFO"),
        )

    @classmethod
    def from_yaml(cls, path: Optional[str] = None) -> "KnowledgeGraphConfig":
        """Load config from YAML file."""
        if path is None:
            path = os.getenv("KNOWLEDGE_GRAPH_CONFIG_PATH", "config/knowledge_graph.yaml")

        config_path = Path(path)
        if not config_path.is_absolute():
            config_path = Path.cwd() / path

        if not config_path.exists():
            # Return default config if file doesn't exist
            return cls()

        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_env(cls) -> "KnowledgeGraphConfig":
        """
        Create config from environment variables.

        Environment variables override YAML config.
        """
        config = cls.from_yaml()

        if os.getenv("KG_SNAPSHOT_PATH"):
            config.storage.snapshot_path = os.getenv("KG_SNAPSHOT_PATH")

        if os.getenv("KG_PIVOT_BONUS"):
            config.scoring.pivot_bonus = float(os.getenv("KG_PIVOT_BONUS"))

        if os.getenv("KG_SYNDROME_BONUS"):
            config.scoring.syndrome_bonus = float(os.getenv("KG_SYNDROME_BONUS"))

        if os.getenv("KG_KEYWORD_BONUS"):
            config.scoring.keyword_bonus = float(os.getenv("KG_KEYWORD_BONUS"))

        if os.getenv("KG_MAX_HOPS"):
            config.resolution.max_hops = int(os.getenv("KG_MAX_HOPS"))

        if os.getenv("KG_PROMOTION_MIN_COUNT"):
            config.learning.promotion_min_count = int(os.getenv("KG_PROMOTION_MIN_COUNT"))

        if os.getenv("LOG_LEVEL"):
            config.log_level = os.getenv("LOG_LEVEL")

        return config


# Global config instance (lazy loaded)
_config: Optional[KnowledgeGraphConfig] = None


def get_config() -> KnowledgeGraphConfig:
    """Get the global knowledge graph configuration (lazy loaded)."""
    global _config
    if _config is None:
        _config = KnowledgeGraphConfig.from_env()
    return _config


def reload_config(path: Optional[str] = None) -> KnowledgeGraphConfig:
    """Reload configuration from file."""
    global _config
    _config = KnowledgeGraphConfig.from_yaml(path)
    return _config
