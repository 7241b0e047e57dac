"""Clinical Lexicon.

Fixed vocabularies used by the concept admission gate, the fragment merger,
the auto-linker and the inference engine, plus the seed data of a fresh
knowledge store. All entries are stored in normalized form (lowercase,
accents stripped).
"""

from typing import Dict, FrozenSet, List, Tuple


# ========================================
# Admission gate
# ========================================

# Filler words stripped from extracted terms before they are gated
TERM_STOP_WORDS: FrozenSet[str] = frozenset({
    "the", "of", "and", "in", "to", "a", "with", "for", "on", "at", "by", "from",
    "is", "are", "was", "were", "has", "have", "had", "as", "or", "but",
})

# Single-word findings that are meaningful on their own
STANDALONE_CLINICAL_ENTITIES: FrozenSet[str] = frozenset({
    "hematemesis", "melena", "jaundice", "cyanosis", "dyspnea", "syncope",
    "palpitation", "purpura", "weight loss", "anorexia",
    "fever", "cough", "vomiting", "nausea", "diarrhea", "asthenia", "fatigue",
    "ascites", "asterixis", "gynecomastia", "hepatomegaly", "splenomegaly",
    "anemia", "thrombocytopenia", "leukopenia", "leukocytosis", "clubbing",
    "confusion", "coma", "seizure", "rash", "pruritus", "hippocratism",
    "crackles", "rales", "wheezing", "headache", "icterus", "hypotension",
})

# Purely contextual or anatomical qualifiers
CONTEXTUAL_DISCARDS: FrozenSet[str] = frozenset({
    "pre-pyloric", "prepyloric", "antral", "antrum", "pyloric",
    "upper digestive", "lower digestive", "physiopathological", "lesional",
    "stenosing", "gastric", "duodenal", "esophageal", "body", "system",
    "acute", "chronic", "mild", "moderate", "severe", "history", "family",
    "left", "right", "upper", "lower", "bilateral", "unilateral",
})

# Modifiers that must not stand alone without their head noun
BLOCKED_SINGLE_TOKENS: FrozenSet[str] = frozenset({
    "palmar", "spider", "shifting", "collateral", "digital", "white",
    "testicular", "neutrophil", "abdominal", "thoracic", "hepatic",
    "renal", "cardiac", "pulmonary", "red", "blue",
    "pitting", "systolic", "diastolic", "rhythmic", "arrhythmic",
    "left", "right", "upper", "lower", "bilateral", "unilateral",
    "acute", "chronic", "mild", "moderate", "severe",
})

# Body parts rejected when extracted as a bare finding
GENERIC_BODY_PARTS: FrozenSet[str] = frozenset({
    "liver", "heart", "lung", "kidney", "spleen", "brain", "stomach",
    "pancreas", "skin", "eye", "ear", "nose", "throat", "hand", "foot",
    "arm", "leg", "abdomen", "chest", "head", "neck", "back", "testicle", "testis",
})

# Head nouns that make a multi-word phrase a valid finding
MEDICAL_HEAD_NOUNS: FrozenSet[str] = frozenset({
    "erythema", "angioma", "angiomas", "dullness", "edema", "circulation",
    "foetor", "fetor", "sign", "syndrome", "count", "level", "time",
    "pressure", "temperature", "pain", "rate", "rhythm", "deficit",
    "murmur", "rub", "gallop", "click", "snap", "node", "nodes",
    "hippocratism", "clubbing", "jaundice", "ascites", "encephalopathy",
    "breath", "sounds", "rales", "crackles", "wheeze", "stridor",
    "mass", "tenderness", "guarding", "rigidity", "rebound", "distension",
    "neutrophilia", "neutropenia", "thrombocytosis", "thrombocytopenia",
    "atrophy", "varices", "stiffness", "cough", "fever", "bleeding",
    # French head nouns found in legacy extractions
    "erythrose", "angiome", "gastropathie", "atrophie", "oedeme",
    "hippocratisme", "splenomegalie", "hepatomegalie", "ascite", "ictere",
})

# Laboratory / measurement vocabulary that is safe to auto-approve
LAB_KEYWORDS: Tuple[str, ...] = (
    "serum", "plasma", "level", "bilirubin", "albumin", "creatinine",
    "gamma", "ggt", "prothrombin", "hemoglobin", "glycemia", "sodium",
    "potassium", "troponin", "lactate",
    "taux", "serique", "plasmatique", "facteur", "bilirubine", "albumine",
    "gammaglutamyl", "prothrombine",
)

# Morphological endings of clinical findings (English and French)
CLINICAL_SUFFIXES: Tuple[str, ...] = (
    "itis", "osis", "emia", "uria", "pathy", "megaly", "oma", "algia", "rrhea",
    "ite", "ose", "emie", "urie", "pathie", "megalie", "ome",
)


# ========================================
# Fragment merging
# ========================================

# Bare adjective -> head noun it was split from
FRAGMENT_MERGE_MAP: Dict[str, str] = {
    "palmar": "erythema",
    "spider": "angiomas",
    "shifting": "dullness",
    "collateral": "circulation",
    "foetor": "hepaticus",
    "fetor": "hepaticus",
    "pitting": "edema",
    "digital": "hippocratism",
    "neutrophil": "count",
    "white": "cell count",
    "testicular": "atrophy",
}


# ========================================
# Auto-linker
# ========================================

# High-signal label terms implying a shared etiology when both nodes carry them
TRIGGER_TERMS: FrozenSet[str] = frozenset({
    "scorpion", "sting", "envenomation", "venom", "toxin", "poisoning",
    "snake", "bite", "trauma", "alcohol", "gallstone",
})

# Reverse relation written for each auto-linked or extracted relation
INVERSE_RELATIONS: Dict[str, str] = {
    "is_specific_of": "has_variant",
    "has_variant": "is_specific_of",
    "is_generalization_of": "is_specific_of",
    "same_etiology_as": "same_etiology_as",
    "related_to": "related_to",
    "applies_to": "has_protocol",
}


# ========================================
# Inference engine
# ========================================

# Generic label tokens ignored by the keyword rescue bonus
KEYWORD_STOP_WORDS: FrozenSet[str] = frozenset({
    "acute", "chronic", "syndrome", "disease", "disorder", "condition",
    "with", "from", "type", "left", "right", "mild", "severe",
    "primary", "secondary", "idiopathic", "recurrent", "management", "protocol",
})


# ========================================
# Semantic links
# ========================================

RESOLVABLE_RELATIONS: FrozenSet[str] = frozenset({"synonym_of", "is_a"})

# Relation names found in older snapshots
LEGACY_RELATION_NAMES: Dict[str, str] = {
    "synonyme_de": "synonym_of",
    "est_un": "is_a",
    "partie_de": "part_of",
    "mesure": "measures",
    "evalue": "evaluates",
    "signe_de": "sign_of",
    "appartient_section": "belongs_to_section",
}

SEED_SEMANTIC_LINKS: List[Tuple[str, str, str]] = [
    # Synonyms
    ("Hyperthermia", "synonym_of", "Fever"),
    ("Febricula", "synonym_of", "Fever"),
    ("Pressure Drop", "synonym_of", "Hypotension"),
    ("Paresis", "synonym_of", "Focal Deficit"),
    ("Hemiplegia", "is_a", "Focal Deficit"),
    ("Rales", "synonym_of", "Crackles"),
    ("Shortness of breath", "synonym_of", "Dyspnea"),
    ("Polypnea", "is_a", "Dyspnea"),
    ("Migraine", "is_a", "Headache"),
    # Measures and evaluations
    ("Thermometer", "measures", "Fever"),
    ("Cuff", "measures", "Hypotension"),
    ("CBC", "evaluates", "Leukocytosis"),
    ("White Blood Cells", "synonym_of", "Leukocytosis"),
    ("Glycemia", "evaluates", "Diabetes"),
    ("Pack-Year", "measures", "Smoking"),
    # Hierarchy and localization
    ("Dry cough", "is_a", "Cough"),
    ("Productive cough", "is_a", "Cough"),
    ("Neck stiffness", "belongs_to_section", "Neurological"),
    ("Photophobia", "belongs_to_section", "Neurological"),
    ("Angina", "synonym_of", "Chest Pain"),
    ("Jaundice", "synonym_of", "Icterus"),
    # Signs
    ("Hypotension", "sign_of", "Shock"),
    ("Cyanosis", "sign_of", "Hypoxemia"),
    ("Crackles", "sign_of", "Pneumonia"),
    ("Leukocytosis", "sign_of", "Infection"),
    ("Proteinuria", "sign_of", "Nephropathy"),
    ("Blood sugar", "synonym_of", "Glycemia"),
]
