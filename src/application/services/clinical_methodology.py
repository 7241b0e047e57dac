"""Clinical Methodology Classification.

Places a clinical concept on the observation form: history-taking sections
for symptoms and antecedents, the paraclinical section for investigations,
and the physical examination for signs and measures, where the examination
method (inspection, palpation, percussion, auscultation, general) is chosen
from keywords of the label.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from domain.clinical_models import ElementType, ExamMethod, ObservationSection


@dataclass(frozen=True)
class MethodologyClassification:
    section: ObservationSection
    exam_method: Optional[ExamMethod] = None


# Default form section of a newly created concept, by type
SECTION_BY_TYPE: Dict[ElementType, ObservationSection] = {
    ElementType.SYMPTOM: ObservationSection.SYMPTOM,
    ElementType.CLINICAL_SIGN: ObservationSection.PHYSICAL_EXAM,
    ElementType.MEASURE: ObservationSection.VITAL_SIGNS,
    ElementType.PARACLINICAL_SIGN: ObservationSection.PARACLINICAL,
    ElementType.ANTECEDENT: ObservationSection.ANTECEDENT,
}

# Checked in order; the first method with a matching keyword wins
EXAM_METHOD_KEYWORDS: Tuple[Tuple[ExamMethod, Tuple[str, ...]], ...] = (
    (ExamMethod.AUSCULTATION, (
        "breath", "sound", "rale", "murmur", "auscultation", "crackle",
        "wheeze", "stridor", "friction", "rub",
    )),
    (ExamMethod.PERCUSSION, ("dullness", "tympany", "percussion", "resonance")),
    (ExamMethod.PALPATION, (
        "tenderness", "mass", "palpation", "vibration", "thrill", "heave",
        "guarding", "rigidity", "fluid wave",
    )),
    (ExamMethod.GENERAL, (
        "pressure", "rate", "temperature", "weight", "saturation", "glasgow", "bmi",
    )),
)


def default_section(element_type: ElementType) -> ObservationSection:
    return SECTION_BY_TYPE.get(element_type, ObservationSection.HISTORY)


def classify_clinical_concept(element_type: ElementType, label: str) -> MethodologyClassification:
    """
    Classify a concept into a form section and examination method.

    Args:
        element_type: Declared type of the concept
        label: Concept label

    Returns:
        MethodologyClassification (exam_method only set for the physical exam)
    """
    if element_type == ElementType.SYMPTOM:
        return MethodologyClassification(ObservationSection.SYMPTOM)
    if element_type == ElementType.ANTECEDENT:
        return MethodologyClassification(ObservationSection.ANTECEDENT)
    if element_type == ElementType.PARACLINICAL_SIGN:
        return MethodologyClassification(ObservationSection.PARACLINICAL)

    if element_type in (ElementType.CLINICAL_SIGN, ElementType.MEASURE):
        lowered = (label or "").lower()
        method = ExamMethod.INSPECTION  # what is seen
        for candidate, keywords in EXAM_METHOD_KEYWORDS:
            if any(k in lowered for k in keywords):
                method = candidate
                break
        return MethodologyClassification(ObservationSection.PHYSICAL_EXAM, method)

    return MethodologyClassification(ObservationSection.SYMPTOM)
