"""
Per-job-type payload models. Intake validates with these before a job is
queued; handlers parse the stored payload with the same model.
Files travel inline as base64 (FilePayload).
"""
import base64
import binascii
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from app.core.errors import JobValidationError
from app.models.job import JobType


DEFAULT_MODEL_CHOICE = "Hybrid (CNN+Tabular)"


class FilePayload(BaseModel):
    content_b64: str = Field(min_length=1)
    mime_type: str | None = None
    filename: str | None = None

    @field_validator("content_b64")
    @classmethod
    def _valid_base64(cls, v: str) -> str:
        try:
            base64.b64decode(v, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("content_b64 is not valid base64") from None
        return v


class RunPredictionPayload(BaseModel):
    front_image: FilePayload
    side_image: FilePayload | None = None
    model_choice: str = DEFAULT_MODEL_CHOICE
    height_cm: float | None = None
    weight: float | None = None
    gender: str = ""


class AutoMaskPredictPayload(BaseModel):
    front_url: str | None = None
    front_image: FilePayload | None = None
    side_url: str | None = None
    side_image: FilePayload | None = None
    bg_url: str | None = None
    bg_image: FilePayload | None = None
    height_cm: float | None = None
    weight: float | None = None
    gender: str = ""
    # Object-store ids of caller-uploaded inputs; deleted once the prediction ran
    input_public_ids: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _front_required(self) -> "AutoMaskPredictPayload":
        if not self.front_url and self.front_image is None:
            raise ValueError("Front image is required (front_url or front_image)")
        return self


class VideoPipelinePayload(BaseModel):
    video_url: str | None = None
    video: FilePayload | None = None
    method: str = "mp"
    mp_t: float | None = None
    height_cm: float | None = None
    weight: float | None = None
    gender: str = ""
    want_back: bool = True
    want_mesh_flag: bool = False

    @model_validator(mode="after")
    def _video_required(self) -> "VideoPipelinePayload":
        if not self.video_url and self.video is None:
            raise ValueError("Video is required (video_url or video)")
        return self


class AvatarPayload(BaseModel):
    pred_json: FilePayload | None = None
    predictions_json: dict | list | None = None
    ui_gender: str = "neutral"

    @model_validator(mode="after")
    def _predictions_required(self) -> "AvatarPayload":
        if self.pred_json is None and self.predictions_json is None:
            raise ValueError("Prediction JSON file is required")
        return self


class GarmentConfig(BaseModel):
    garment_type: str
    gender: str | None = None
    view: str = "front"
    occasion: str | None = None
    aesthetic_keywords: list[str] = Field(default_factory=list)
    fit: str | None = None
    fit_notes: str | None = None
    fabric_ref_id: str | None = None
    embroidery_ref_id: str | None = None
    has_strict_embroidery: bool = False
    measurement_profile: dict[str, Any] = Field(default_factory=dict)
    construction_selections: dict[str, Any] = Field(default_factory=dict)
    inspiration_image_urls: list[str] = Field(default_factory=list)
    silhouette_image_url: str | None = None


class GenerateOutfitPayload(BaseModel):
    config: GarmentConfig
    user_prompt: str | None = None
    reference_image_urls: list[str] = Field(default_factory=list)


class EditGarmentPayload(BaseModel):
    base_image_url: str = Field(min_length=1)
    fabric_image_url: str = ""
    accessory_image_url: str = ""
    addon_image_url: str = ""
    garment_type: str = "women's flare mini dress"
    base_color: str = ""
    pattern: str = ""
    fit: str = "tailored"
    style_notes: str = ""
    metadata_json: dict[str, Any] | None = None


PAYLOAD_MODELS: dict[JobType, type[BaseModel]] = {
    JobType.RUN_PREDICTION: RunPredictionPayload,
    JobType.AUTO_MASK_PREDICT: AutoMaskPredictPayload,
    JobType.VIDEO_PIPELINE: VideoPipelinePayload,
    JobType.AVATAR: AvatarPayload,
    JobType.GENERATE_OUTFIT: GenerateOutfitPayload,
    JobType.EDIT_GARMENT: EditGarmentPayload,
}


def parse_payload(job_type: JobType, payload: dict[str, Any] | None) -> BaseModel:
    """Validate a raw payload for `job_type`. Raises JobValidationError with a readable message."""
    model = PAYLOAD_MODELS[JobType(job_type)]
    try:
        return model.model_validate(payload or {})
    except ValidationError as e:
        messages = []
        for err in e.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()))
            msg = err.get("msg", "invalid")
            messages.append(f"{loc}: {msg}" if loc else msg)
        raise JobValidationError("; ".join(messages)) from e
