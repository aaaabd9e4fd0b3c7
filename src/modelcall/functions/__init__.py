"""
Call-type functions and the model base classes provider adapters implement.
"""

from .embedding import embed_text, embed_texts, embed_texts_full, embed_texts_sync
from .image import generate_image, generate_image_full, generate_image_sync
from .model import (
    ImageGenerationModel,
    Model,
    ModelSettings,
    StructureGenerationModel,
    StructureOrTextGenerationModel,
    TextEmbeddingModel,
    TextGenerationModel,
    TextStreamingModel,
    TranscriptionModel,
)
from .structure import (
    generate_structure,
    generate_structure_full,
    generate_structure_or_text,
    generate_structure_or_text_full,
    generate_structure_sync,
)
from .text import generate_text, generate_text_full, generate_text_sync, stream_text
from .transcription import transcribe, transcribe_full, transcribe_sync

__all__ = [
    "Model",
    "ModelSettings",
    "TextGenerationModel",
    "TextStreamingModel",
    "StructureGenerationModel",
    "StructureOrTextGenerationModel",
    "TextEmbeddingModel",
    "ImageGenerationModel",
    "TranscriptionModel",
    "generate_text",
    "generate_text_full",
    "generate_text_sync",
    "stream_text",
    "generate_structure",
    "generate_structure_full",
    "generate_structure_sync",
    "generate_structure_or_text",
    "generate_structure_or_text_full",
    "embed_texts",
    "embed_texts_full",
    "embed_texts_sync",
    "embed_text",
    "generate_image",
    "generate_image_full",
    "generate_image_sync",
    "transcribe",
    "transcribe_full",
    "transcribe_sync",
]
