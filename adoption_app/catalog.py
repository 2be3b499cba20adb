"""
Animal and breed options used across the application.
"""

ANIMAL_OPTIONS = [
    {"value": "dog", "label": "Dog"},
    {"value": "cat", "label": "Cat"},
    {"value": "bird", "label": "Bird"},
    {"value": "turtle", "label": "Turtle"},
    {"value": "lizard", "label": "Lizard"},
    {"value": "rabbit", "label": "Rabbit"},
    {"value": "snake", "label": "Snake"},
    {"value": "hamster", "label": "Hamster"},
    {"value": "guinea_pig", "label": "Guinea Pig"},
    {"value": "other", "label": "Other"},
]

UNKNOWN_BREED = "Unknown"

# Minimal breed lists, each ending with Unknown
BREEDS_BY_ANIMAL = {
    "dog": [
        "Labrador Retriever",
        "Golden Retriever",
        "Croatian Shepherd",
        UNKNOWN_BREED,
    ],
    "cat": ["Persian", UNKNOWN_BREED],
    "bird": ["Parakeet", "Canary", "Cockatiel", UNKNOWN_BREED],
    "turtle": [UNKNOWN_BREED],
    "lizard": ["Bearded Dragon", UNKNOWN_BREED],
    "rabbit": [UNKNOWN_BREED],
    "snake": [UNKNOWN_BREED],
    "hamster": [UNKNOWN_BREED],
    "guinea_pig": [UNKNOWN_BREED],
    "other": [UNKNOWN_BREED],
}


def animal_values() -> list[str]:
    return [opt["value"] for opt in ANIMAL_OPTIONS]


def breeds_for(animal_type: str) -> list[str]:
    """Breed options for an animal type (empty list when no animal is selected)."""
    if not animal_type:
        return []
    return list(BREEDS_BY_ANIMAL.get(animal_type, [UNKNOWN_BREED]))
