"""Modality construction for concept tree branches.

Turns the free-text qualifiers of an extracted element ("Hb < 9 g/dL",
"productive", "> 38,5") into modalities. A comparator followed by a number
becomes a numeric condition; anything else is an equality test against the
literal qualifier. An element without qualifiers gets a single "Present"
modality.
"""

import re
import logging
from typing import Iterable, List, Optional

from domain.clinical_models import LogicalOperator, Modality, ModalityCondition
from config.knowledge_config import ModalityConfig

logger = logging.getLogger(__name__)

# Longest comparators first so "<=" is not read as "<"
NUMERIC_CONDITION_PATTERN = re.compile(r"(<=|>=|<|>|=)\s*?(\d+(?:\.\d+)?)")

COMPARATOR_OPERATORS = {
    "<": LogicalOperator.LT,
    "<=": LogicalOperator.LTE,
    ">": LogicalOperator.GT,
    ">=": LogicalOperator.GTE,
    "=": LogicalOperator.EQ,
}


def parse_numeric_condition(text: str) -> Optional[ModalityCondition]:
    """
    Parse a "(comparator)(number)" pattern anywhere in a qualifier.

    Decimal commas are read as dots: "> 38,5" -> gt 38.5.

    Returns:
        ModalityCondition, or None if the qualifier holds no comparison
    """
    if not text:
        return None
    match = NUMERIC_CONDITION_PATTERN.search(text.replace(",", "."))
    if not match:
        return None
    return ModalityCondition(
        operator=COMPARATOR_OPERATORS[match.group(1)],
        threshold=float(match.group(2)),
    )


def build_modalities(
    qualifiers: Iterable[str],
    config: Optional[ModalityConfig] = None,
) -> List[Modality]:
    """
    Build the modalities of a concept tree branch.

    Args:
        qualifiers: Characteristics and values of the extracted element
        config: Classes and scores of the synthesized modalities

    Returns:
        One modality per non-empty qualifier, or a single "Present" modality
    """
    config = config or ModalityConfig()
    modalities = []

    for qualifier in qualifiers:
        label = (qualifier or "").strip()
        if not label:
            continue
        condition = parse_numeric_condition(label)
        if condition is None:
            condition = ModalityCondition(operator=LogicalOperator.EQ, threshold=label)
        else:
            logger.debug(f"Parsed qualifier '{label}' as {condition.operator.value} {condition.threshold}")
        modalities.append(Modality(
            label=label,
            modality_class=config.qualifier_class,
            score=config.qualifier_score,
            condition=condition,
        ))

    if not modalities:
        modalities.append(Modality(
            label=config.present_label,
            modality_class=config.present_class,
            score=config.present_score,
            condition=ModalityCondition(operator=LogicalOperator.EQ, threshold=True),
        ))
    return modalities
