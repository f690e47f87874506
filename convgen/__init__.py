"""
convgen: structural type-conversion synthesizer
"""

__version__ = "1.0.0"
__author__ = "convgen Team"

from convgen.core.pipeline import ConversionPipeline

__all__ = ["ConversionPipeline"]
