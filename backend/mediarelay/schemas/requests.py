"""Pydantic v2 request bodies for the generation endpoints.

Bodies declare only the credential fields, the prompt and the reference
media; every other key is a provider option and is validated by the
provider's ``normalize``, not here.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict

from mediarelay.models import GenerationRequest


class JobRequestBody(BaseModel):
    """Common split of a body into secrets, prompt, reference and options."""

    model_config = ConfigDict(extra="allow")

    secret_fields: ClassVar[tuple[str, ...]] = ()
    prompt_field: ClassVar[str | None] = "prompt"
    reference_field: ClassVar[str | None] = None

    def secrets(self) -> dict[str, Any]:
        return {name: getattr(self, name, None) for name in self.secret_fields}

    def to_generation_request(self) -> GenerationRequest:
        data = self.model_dump()
        for name in self.secret_fields:
            data.pop(name, None)
        prompt = data.pop(self.prompt_field, None) if self.prompt_field else None
        reference = data.pop(self.reference_field, None) if self.reference_field else None
        options = {k: v for k, v in data.items() if v is not None}
        return GenerationRequest(
            prompt=prompt or "",
            reference_url=reference,
            options=options,
        )


class KlingRequest(JobRequestBody):
    secret_fields = ("access_key", "secret_key")
    reference_field = "image_url"

    access_key: str | None = None
    secret_key: str | None = None
    prompt: str | None = None
    image_url: str | None = None


class SoraRequest(JobRequestBody):
    secret_fields = ("openai_api_key",)
    reference_field = "input_reference_url"

    openai_api_key: str | None = None
    prompt: str | None = None
    input_reference_url: str | None = None


class VeoRequest(JobRequestBody):
    secret_fields = ("gemini_api_key",)
    reference_field = "image_url"

    gemini_api_key: str | None = None
    prompt: str | None = None
    image_url: str | None = None


class HeyGenRequest(JobRequestBody):
    secret_fields = ("heygen_api_key",)
    prompt_field = "script"

    heygen_api_key: str | None = None
    script: str | None = None


class AssemblyAIRequest(JobRequestBody):
    """Transcription: the audio URL plays the reference-media role."""

    secret_fields = ("assemblyai_api_key",)
    prompt_field = None
    reference_field = "audio_url"

    assemblyai_api_key: str | None = None
    audio_url: str | None = None


class SupadataRequest(JobRequestBody):
    """Transcript of a social-platform video; ``language`` is an option."""

    secret_fields = ("supadata_api_key",)
    prompt_field = None
    reference_field = "video_url"

    supadata_api_key: str | None = None
    video_url: str | None = None
