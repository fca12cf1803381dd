from __future__ import annotations

import logging

import vertexai
from vertexai.generative_models import GenerationConfig, GenerativeModel

logger = logging.getLogger(__name__)


class VertexAIAdapter:
    """Adapter for Vertex AI Gemini models."""

    def __init__(
        self,
        *,
        project_id: str,
        location: str = "australia-southeast1",
        model_name: str = "gemini-1.5-pro",
        temperature: float = 0.1,
        max_output_tokens: int = 4000,
    ) -> None:
        """Initialize Vertex AI adapter.

        Args:
            project_id: GCP project ID
            location: Vertex AI location
            model_name: Model name (e.g., "gemini-1.5-pro")
            temperature: Sampling temperature used for every request
            max_output_tokens: Maximum output tokens per request
        """
        self.project_id = project_id
        self.location = location
        self.model_name = model_name
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

        vertexai.init(project=project_id, location=location)

    def generate_text(self, *, system_instruction: str, user_message: str) -> str:
        """Generate a free-text response.

        Args:
            system_instruction: Fixed domain instruction for the model
            user_message: Request content (transcript and context)

        Returns:
            Generated text
        """
        model = GenerativeModel(self.model_name, system_instruction=[system_instruction])
        generation_config = GenerationConfig(
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
        )

        response = model.generate_content(
            user_message,
            generation_config=generation_config,
        )

        generated_text = response.text

        logger.info(
            "Generated content with Vertex AI",
            extra={
                "model": self.model_name,
                "temperature": self.temperature,
                "input_length": len(user_message),
                "output_length": len(generated_text),
            },
        )

        return generated_text


__all__ = ["VertexAIAdapter"]
