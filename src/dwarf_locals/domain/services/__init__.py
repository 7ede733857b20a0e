#!/usr/bin/env python3

"""Domain services: type resolution, location evaluation and variable extraction."""

from .location_evaluator import LocationEvaluator
from .type_resolver import TypeResolver
from .variable_extractor import VariableExtractor

__all__ = ["LocationEvaluator", "TypeResolver", "VariableExtractor"]
