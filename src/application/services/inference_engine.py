"""Inference Engine (clinical convolution).

Ranks knowledge nodes against an observation.

Steps:
1. Index every observation value under several keys: its element id, the
   normalized label of that element, the semantically resolved label and
   any concept id reachable from those labels
2. Normalize each value once into an ObservedValue (absent, boolean, number
   or text)
3. Score every candidate node:
   - presence of each concept tree branch (+presence_score), plus the best
     satisfied modality of that branch
   - pivot terms found in the raw text (+pivot_bonus each)
   - linked syndromes with an active concept (+syndrome_bonus each)
   - label keywords found in the raw text (+keyword_bonus each)
4. Expand the top results along graph edges and legacy node links

Scoring never raises on mismatched types: a comparison that cannot be made
is simply not satisfied.
"""

import logging
import math
import re
from typing import Any, Callable, Dict, List, Optional

from domain.clinical_lexicon import KEYWORD_STOP_WORDS
from domain.clinical_models import (
    ConceptTreeBranch,
    KnowledgeNode,
    LogicalOperator,
    Modality,
    ModalityCondition,
    Observation,
    WidgetType,
)
from domain.inference_models import ConceptValueType, InferenceResult, ObservedValue, ValueKind
from domain.knowledge_store import KnowledgeStore
from config.knowledge_config import ScoringConfig
from application.services.concept_store import ConceptStore
from application.services.semantic_link_service import SemanticLinkGraph
from application.services.semantic_normalizer import normalize_for_search, normalize_label
from application.services.vocabulary_registry import VocabularyRegistry

logger = logging.getLogger(__name__)

LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")

NUMERIC_OPERATORS = {
    LogicalOperator.GT: lambda v, t: v > t,
    LogicalOperator.LT: lambda v, t: v < t,
    LogicalOperator.GTE: lambda v, t: v >= t,
    LogicalOperator.LTE: lambda v, t: v <= t,
    LogicalOperator.EQ: lambda v, t: v == t,
}

ObservationIndex = Dict[str, ObservedValue]


# ========================================
# Value normalization and comparison
# ========================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def normalize_observation_value(raw: Any) -> ObservedValue:
    """
    Coerce an externally supplied value.

    None and blank strings are absent; "true"/"false" become booleans and
    numeric strings become numbers.
    """
    if raw is None:
        return ObservedValue.absent()
    if isinstance(raw, bool):
        return ObservedValue.boolean(raw)
    if _is_number(raw):
        if isinstance(raw, float) and math.isnan(raw):
            return ObservedValue.absent()
        return ObservedValue.number(raw)
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return ObservedValue.absent()
        lowered = text.lower()
        if lowered in ("true", "false"):
            return ObservedValue.boolean(lowered == "true")
        try:
            number = float(text)
        except ValueError:
            return ObservedValue.text(text)
        return ObservedValue.text(text) if math.isnan(number) else ObservedValue.number(number)

    logger.debug(f"Unsupported observation value type {type(raw).__name__}, treated as absent")
    return ObservedValue.absent()


def runtime_value_type(observed: ObservedValue) -> Optional[ConceptValueType]:
    """Type guessed from the observed value itself."""
    return {
        ValueKind.BOOLEAN: ConceptValueType.BOOLEAN,
        ValueKind.NUMBER: ConceptValueType.NUMERIC,
        ValueKind.TEXT: ConceptValueType.TEXT,
    }.get(observed.kind)


def is_present(value_type: Optional[ConceptValueType], observed: ObservedValue) -> bool:
    """
    Presence rule by declared type.

    boolean: strictly True; numeric: any number, zero included;
    text: non-empty string.
    """
    if value_type == ConceptValueType.BOOLEAN:
        return observed.kind == ValueKind.BOOLEAN and observed.value is True
    if value_type == ConceptValueType.NUMERIC:
        return observed.kind == ValueKind.NUMBER
    if value_type == ConceptValueType.TEXT:
        return observed.kind == ValueKind.TEXT and bool(observed.value)
    return False


def coerce_number(value: Any) -> Optional[float]:
    """Number, or the leading number of a string ("9 g/dL" -> 9.0), else None."""
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        match = LEADING_NUMBER.match(value)
        if match:
            return float(match.group(0))
    return None


def _loose_equals(value: Any, threshold: Any) -> bool:
    if isinstance(value, str) and isinstance(threshold, str):
        return " ".join(value.lower().split()) == " ".join(threshold.lower().split())
    if isinstance(threshold, bool) or isinstance(value, bool):
        return value is threshold
    if _is_number(value) or _is_number(threshold):
        first, second = coerce_number(value), coerce_number(threshold)
        return first is not None and first == second
    return value == threshold


def evaluate_condition(condition: ModalityCondition, observed: ObservedValue) -> bool:
    """
    Evaluate a modality condition against a normalized value.

    Ordering comparisons, and equality against a numeric threshold, need both
    sides numeric; otherwise they are not satisfied.
    """
    if observed.is_absent:
        return False

    operator = condition.operator
    threshold = condition.threshold

    if operator == LogicalOperator.CONTAINS:
        if threshold is None or observed.kind not in (ValueKind.TEXT, ValueKind.NUMBER):
            return False
        return str(threshold).lower() in str(observed.value).lower()

    if operator != LogicalOperator.EQ or _is_number(threshold):
        threshold_number = coerce_number(threshold)
        if threshold_number is None:
            return False
        if observed.kind == ValueKind.NUMBER:
            value_number = float(observed.value)
        elif observed.kind == ValueKind.TEXT:
            value_number = coerce_number(observed.value)
        else:
            return False
        if value_number is None:
            return False
        return NUMERIC_OPERATORS[operator](value_number, threshold_number)

    return _loose_equals(observed.value, threshold)


# ========================================
# Engine
# ========================================

class InferenceEngine:
    """
    Scores knowledge nodes against observations.

    Read-only with respect to the store.
    """

    def __init__(
        self,
        store: KnowledgeStore,
        links: SemanticLinkGraph,
        concepts: ConceptStore,
        vocabulary: VocabularyRegistry,
        config: Optional[ScoringConfig] = None,
        candidate_provider: Optional[Callable[[Observation], List[KnowledgeNode]]] = None,
    ):
        """
        Initialize the inference engine.

        Args:
            store: Knowledge store snapshot
            links: Semantic link graph used to resolve labels
            concepts: Concept store (declared types, label resolution)
            vocabulary: Legacy vocabulary (element labels, type fallback)
            config: Scoring weights
            candidate_provider: Pre-filter returning candidate nodes; all
                nodes when omitted
        """
        self.store = store
        self.links = links
        self.concepts = concepts
        self.vocabulary = vocabulary
        self.config = config or ScoringConfig()
        self.candidate_provider = candidate_provider

    def build_observation_index(self, observation: Observation) -> ObservationIndex:
        """Multi-key lookup of normalized observation values."""
        index: ObservationIndex = {}
        for item in observation.values:
            observed = normalize_observation_value(item.value)
            index[item.element_id] = observed

            label = self._element_label(item.element_id)
            if not label:
                continue
            normalized = normalize_label(label)
            resolved = self.links.resolve_label(normalized)
            for key in (normalized, resolved):
                if key:
                    index[key] = observed
            for candidate in (normalized, resolved):
                concept_id = self.concepts.resolve_to_concept_id(candidate)
                if concept_id:
                    index[concept_id] = observed
        return index

    def _element_label(self, element_id: str) -> Optional[str]:
        concept = self.concepts.get(element_id)
        if concept:
            return concept.label
        element = self.vocabulary.get(element_id)
        if element:
            return element.name
        return None

    def lookup(self, concept_id: str, index: ObservationIndex) -> ObservedValue:
        """Observed value for a concept reference, by id then by label."""
        if concept_id in index:
            return index[concept_id]

        labels: List[str] = []
        concept = self.concepts.get(concept_id)
        if concept:
            labels.extend(concept.all_labels())
        element = self.vocabulary.get(concept_id)
        if element:
            labels.append(element.name)

        for label in labels:
            normalized = normalize_label(label)
            for key in (normalized, self.links.resolve_label(normalized)):
                if key in index:
                    return index[key]
        return ObservedValue.absent()

    def declared_type(self, concept_id: str, observed: ObservedValue) -> Optional[ConceptValueType]:
        """Concept store type, then legacy vocabulary mode, then the value's own type."""
        value_type = self.concepts.value_type(concept_id)
        if value_type:
            return value_type

        element = self.vocabulary.get(concept_id)
        if element is None:
            concept = self.concepts.get(concept_id)
            element = self.vocabulary.find_by_label(concept.label) if concept else None
        if element:
            if element.mode.type in (WidgetType.NUMERIC, WidgetType.SCALE) or element.mode.unit:
                return ConceptValueType.NUMERIC
            if element.mode.type == WidgetType.BOOLEAN:
                return ConceptValueType.BOOLEAN
            return ConceptValueType.TEXT

        return runtime_value_type(observed)

    def is_concept_active(self, concept_id: str, index: ObservationIndex) -> bool:
        observed = self.lookup(concept_id, index)
        return is_present(self.declared_type(concept_id, observed), observed)

    def best_modality(self, branch: ConceptTreeBranch, observed: ObservedValue) -> Optional[Modality]:
        """Highest scoring modality whose condition holds (first one on ties)."""
        satisfied = [m for m in branch.modalities if evaluate_condition(m.condition, observed)]
        if not satisfied:
            return None
        return max(satisfied, key=lambda m: m.score)

    def keyword_matches(self, node: KnowledgeNode, raw_text: str) -> List[str]:
        """Label tokens found in the raw text."""
        text = normalize_for_search(raw_text)
        if not text:
            return []
        matches = []
        for token in normalize_for_search(node.display_label).split():
            if len(token) < self.config.keyword_min_length or token in KEYWORD_STOP_WORDS:
                continue
            if token in text and token not in matches:
                matches.append(token)
        return matches

    def score_node(self, node: KnowledgeNode, observation: Observation, index: ObservationIndex) -> InferenceResult:
        """Score one node against an indexed observation."""
        result = InferenceResult(node=node, score=0.0, observation_keys=list(index.keys()))

        for branch in node.clinical.branches():
            observed = self.lookup(branch.concept_id, index)
            if not is_present(self.declared_type(branch.concept_id, observed), observed):
                result.unmatched_concepts.append(branch.concept_id)
                continue

            result.score += self.config.presence_score
            result.matched_concepts.append(branch.concept_id)

            modality = self.best_modality(branch, observed)
            if modality:
                result.score += modality.score
                result.active_modalities.append(modality)
                result.reasoning_path.append(f"{modality.modality_class}: {modality.label}")

        raw_lower = (observation.raw_text or "").lower()
        for term in node.clinical.pivot_terms:
            needle = term.strip().lower()
            if needle and needle in raw_lower:
                result.score += self.config.pivot_bonus
                result.reasoning_path.append(f"Pivot: {term.strip()}")

        for syndrome_id in node.syndrome_ids:
            syndrome = self.store.get_syndrome(syndrome_id)
            if syndrome and any(self.is_concept_active(cid, index) for cid in syndrome.concept_ids):
                result.score += self.config.syndrome_bonus
                result.active_syndromes.append(syndrome)
                result.reasoning_path.append(f"Syndrome: {syndrome.label}")

        keywords = self.keyword_matches(node, observation.raw_text)
        if keywords:
            result.score += self.config.keyword_bonus * len(keywords)
            result.reasoning_path.append(f"Keyword Match: {', '.join(keywords)}")

        logger.debug(
            f"Scored '{node.display_label}': {result.score} "
            f"(matched={len(result.matched_concepts)}, unmatched={len(result.unmatched_concepts)})"
        )
        return result

    def candidates(self, observation: Observation) -> List[KnowledgeNode]:
        if self.candidate_provider:
            return self.candidate_provider(observation)
        return list(self.store.nodes)

    def query_graph(self, observation: Observation) -> List[InferenceResult]:
        """
        Rank nodes against an observation.

        Args:
            observation: Observed values plus raw narrative

        Returns:
            Every scored or reached node, highest score first; callers filter
            on score > 0 before display
        """
        index = self.build_observation_index(observation)
        results = [self.score_node(node, observation, index) for node in self.candidates(observation)]
        results.sort(key=lambda r: r.score, reverse=True)

        results = self.expand(results)
        results.sort(key=lambda r: r.score, reverse=True)
        return results

    def expand(self, results: List[InferenceResult]) -> List[InferenceResult]:
        """
        Propagate the score of the top results to the nodes they point to.

        A reached node already in the results is raised to at least the
        source's score; an unscored node is added with the source's score.
        """
        by_id = {r.node_id: r for r in results}
        expanded = list(results)

        for source in results[: self.config.expansion_top_n]:
            for edge in self.store.edges_from(source.node_id):
                target = self.store.get_node(edge.target_id)
                if target is None:
                    logger.warning(f"Edge {source.node_id} -{edge.relation}-> {edge.target_id} targets a missing node")
                    continue
                existing = by_id.get(target.node_id)
                if existing:
                    existing.score = max(existing.score, source.score)
                    existing.reasoning_path.append(f"Boosted by {source.node.display_label} ({edge.relation})")
                else:
                    added = InferenceResult(
                        node=target,
                        score=source.score,
                        reasoning_path=[f"Linked to {source.node.display_label} via edge ({edge.relation})"],
                    )
                    by_id[target.node_id] = added
                    expanded.append(added)

            for link in source.node.links:
                if link.target_node_id in by_id:
                    continue
                target = self.store.get_node(link.target_node_id)
                if target is None:
                    continue
                added = InferenceResult(
                    node=target,
                    score=source.score,
                    reasoning_path=[f"Linked to {source.node.display_label} via link ({link.relation})"],
                )
                by_id[target.node_id] = added
                expanded.append(added)

        return expanded
