"""
Mirror module for GitBook sites.

Contains components for rendering, extracting, converting, downloading
images, and orchestrating a mirror run.
"""

from .mirror import GitbookMirror, MirrorResult
from .renderer import PageRenderer, RendererError, NavigationError
from .extractor import ContentExtractor, ExtractedContent
from .toc import TocExtractor, TocEntry
from .converter import MarkdownTransformer, ConversionRule, build_rules
from .images import ImagePipeline, ImageContext, ImageReference

__all__ = [
    "GitbookMirror",
    "MirrorResult",
    "PageRenderer",
    "RendererError",
    "NavigationError",
    "ContentExtractor",
    "ExtractedContent",
    "TocExtractor",
    "TocEntry",
    "MarkdownTransformer",
    "ConversionRule",
    "build_rules",
    "ImagePipeline",
    "ImageContext",
    "ImageReference",
]
