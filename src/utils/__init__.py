from .entity_names import clean_entity_name, normalize_entity, UNKNOWN_ENTITY

__all__ = [
    "clean_entity_name",
    "normalize_entity",
    "UNKNOWN_ENTITY",
]
