"""Output pipeline — terminal normalization and reply extraction."""

from codexbridge.core.output.extractor import ContentExtractor, LineAssembler, replay
from codexbridge.core.output.normalizer import StreamNormalizer, normalize, strip_ansi

__all__ = [
    "ContentExtractor",
    "LineAssembler",
    "StreamNormalizer",
    "normalize",
    "replay",
    "strip_ansi",
]
