from reference.tables import RateBand, ReferenceData, get_reference_data, load_reference_data

__all__ = [
    "RateBand",
    "ReferenceData",
    "get_reference_data",
    "load_reference_data",
]
