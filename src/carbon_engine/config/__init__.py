"""Configuration models — engine inputs and run settings."""

from carbon_engine.config.inputs import EngineInputs, load_engine_inputs, PER_YEAR_FIELDS, RATE_FIELDS
from carbon_engine.config.settings import EngineSettings

__all__ = [
    "EngineInputs",
    "EngineSettings",
    "load_engine_inputs",
    "PER_YEAR_FIELDS",
    "RATE_FIELDS",
]
