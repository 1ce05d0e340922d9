"""Inference adapters: prompts, response parsing and the OpenAI gateway."""

from .errors import InferenceGatewayError, ModelResponseError
from .openai_gateway import OpenAIInferenceGateway
from .prompt_builder import classification_prompt, extraction_prompt
from .response_parser import PageResponseParser, ParsedClassification

__all__ = [
    "InferenceGatewayError",
    "ModelResponseError",
    "OpenAIInferenceGateway",
    "PageResponseParser",
    "ParsedClassification",
    "classification_prompt",
    "extraction_prompt",
]
