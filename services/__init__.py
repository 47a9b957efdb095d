"""
OpenAI-backed collaborators for the assembly pipeline.
"""

from services.llm_classifier import OpenAIQualityClassifier
from services.llm_generator import OpenAIQuestionGenerator

__all__ = ["OpenAIQualityClassifier", "OpenAIQuestionGenerator"]
