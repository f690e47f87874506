"""Core convgen modules."""

from convgen.core.context import GenerationContext
from convgen.core.manual_registry import ManualConversionEntry, ManualConversionRegistry
from convgen.core.memory_equivalence import MemoryEquivalence, NoEquality, TypeEquality
from convgen.core.pair_selector import PairSelector, Selection
from convgen.core.pipeline import ConversionPipeline, PipelineResult
from convgen.core.registration import RegistrationEmitter, RegistrationTable
from convgen.core.synthesizer import ConversionSynthesizer, GeneratedConversion
from convgen.core.tags import TagExtractor
from convgen.core.types import TypeDescriptor, Universe

__all__ = [
    "Universe",
    "TypeDescriptor",
    "TagExtractor",
    "ManualConversionRegistry",
    "ManualConversionEntry",
    "TypeEquality",
    "MemoryEquivalence",
    "NoEquality",
    "GenerationContext",
    "PairSelector",
    "Selection",
    "ConversionSynthesizer",
    "GeneratedConversion",
    "RegistrationEmitter",
    "RegistrationTable",
    "ConversionPipeline",
    "PipelineResult",
]
