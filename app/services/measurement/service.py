"""
Job handlers for body measurement and garment imaging.

Metered handlers wrap the remote call in BillingGuard.metered: the hold is
taken before any backend traffic and captured only after the call (and any
upload of its output) succeeded.
"""
import json
import logging
from contextlib import ExitStack
from typing import Any

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import InferenceError, ObjectStoreError
from app.models.job import Job
from app.schemas.payloads import (
    AutoMaskPredictPayload,
    AvatarPayload,
    EditGarmentPayload,
    FilePayload,
    GenerateOutfitPayload,
    RunPredictionPayload,
    VideoPipelinePayload,
)
from app.services.billing.guard import BillingGuard
from app.services.inference import FileBlob, InferenceAdapter, RemoteFile, decode_data_url, extension_for
from app.services.measurement.metadata import build_metadata_from_config, build_prompt
from app.services.platform.settings_service import BillableOperation
from app.storage.base import ObjectStore, StoredObject

logger = logging.getLogger(__name__)

DEFAULT_HEIGHT_CM = 175
DEFAULT_VIDEO_MP_T = 0.12
# Auto-mask tuning passed to the segmentation model
AUTO_MASK_PARAMS = {"mp_t": 0.1, "de_top": 0.3, "de_bottom": 0.1, "t_boost": 1.1}
EDITOR_MODEL = "gemini-2.5-flash-image"


def _blob(file: FilePayload | None, name: str) -> FileBlob | None:
    if file is None:
        return None
    return FileBlob.from_payload(file.model_dump(), default_name=name)


class MeasurementService:
    def __init__(
        self,
        db: Session,
        adapter: InferenceAdapter,
        object_store: ObjectStore | None = None,
    ) -> None:
        self.db = db
        self.adapter = adapter
        self.object_store = object_store
        self.billing = BillingGuard(db)
        self.measurement_space = settings.measurement_space
        self.outfit_space = settings.outfit_generator_space
        self.editor_space = settings.image_editor_space

    def run_predict(self, job: Job, payload: RunPredictionPayload) -> list[Any]:
        return self.adapter.predict(
            self.measurement_space,
            "/run_predict",
            {
                "model_choice": payload.model_choice,
                "front_image": _blob(payload.front_image, "front"),
                "side_image": _blob(payload.side_image, "side"),
                "height_cm": payload.height_cm or DEFAULT_HEIGHT_CM,
                "weight": payload.weight or 0,
                "gender": payload.gender,
            },
        )

    def auto_mask_predict(self, job: Job, payload: AutoMaskPredictPayload) -> list[Any]:
        with self.billing.metered(job.job_id, job.business_id, job.customer_id, BillableOperation.IMAGE):
            try:
                with ExitStack() as stack:
                    urls = {}
                    for name, url, file in (
                        ("front", payload.front_url, payload.front_image),
                        ("side", payload.side_url, payload.side_image),
                        ("bg", payload.bg_url, payload.bg_image),
                    ):
                        if file is not None:
                            stored = stack.enter_context(
                                self.adapter.staged(_blob(file, name), folder="temp/measurements", resource_type="image")
                            )
                            url = stored.file_url
                        urls[name] = url or None
                    return self.adapter.predict(
                        self.measurement_space,
                        "/_auto_mask_and_predict_url",
                        {
                            "model_choice": "Hybrid (CNN+Tabular)",
                            "method": "hybrid",
                            "bg_url": urls["bg"],
                            "front_url": urls["front"],
                            "side_url": urls["side"],
                            "height_cm": payload.height_cm or DEFAULT_HEIGHT_CM,
                            "weight": payload.weight or 0,
                            "gender": payload.gender,
                            **AUTO_MASK_PARAMS,
                        },
                    )
            finally:
                for public_id in payload.input_public_ids:
                    self.adapter.discard(public_id)

    def video_pipeline(self, job: Job, payload: VideoPipelinePayload) -> list[Any]:
        with self.billing.metered(job.job_id, job.business_id, job.customer_id, BillableOperation.VIDEO):
            with ExitStack() as stack:
                video_url = payload.video_url
                if payload.video is not None:
                    stored = stack.enter_context(
                        self.adapter.staged(_blob(payload.video, "video.mp4"), folder="temp/videos", resource_type="video")
                    )
                    video_url = stored.file_url
                return self.adapter.predict(
                    self.measurement_space,
                    "/_video_pipeline_url",
                    {
                        "video_url": video_url,
                        "method": payload.method or "mp",
                        "mp_t": payload.mp_t or DEFAULT_VIDEO_MP_T,
                        "height_cm": payload.height_cm or DEFAULT_HEIGHT_CM,
                        "model_choice": "Hybrid (CNN+Tabular)",
                        "want_back": payload.want_back,
                        "weight_val": payload.weight or 0,
                        "gender_val": payload.gender,
                        "want_mesh_flag": payload.want_mesh_flag,
                    },
                )

    def generate_avatar(self, job: Job, payload: AvatarPayload) -> dict[str, Any]:
        blob = _blob(payload.pred_json, "predictions.json")
        if blob is None:
            blob = FileBlob.from_json(payload.predictions_json, "predictions.json")
        outputs = self.adapter.predict(
            self.measurement_space,
            "/_avatar_from_last_preds",
            {"out_json_path": blob, "ui_gender": payload.ui_gender},
        )
        remote = next((f for f in map(RemoteFile.from_output, outputs) if f is not None), None)
        if remote is None:
            raise InferenceError(
                "Avatar backend returned no file",
                detail={"space": self.measurement_space, "endpoint": "/_avatar_from_last_preds"},
            )
        content = self.adapter.download(self.measurement_space, remote)
        filename = remote.orig_name or f"{job.job_id}{extension_for(remote.mime_type) or '.glb'}"
        stored = self._store(content, "avatars", filename, resource_type="raw")
        return {"avatar_file": outputs[0], **self._stored_dict(stored)}

    def generate_outfit(self, job: Job, payload: GenerateOutfitPayload) -> dict[str, Any]:
        metadata = build_metadata_from_config(payload.config)
        outputs = self.adapter.predict(
            self.outfit_space,
            "/generate_handler",
            {
                "prompt": build_prompt(payload.user_prompt),
                "view": payload.config.view or "front",
                "image_inputs": ",".join(payload.reference_image_urls),
                "metadata_json": json.dumps(metadata),
            },
        )
        content, mime = self._image_output(self.outfit_space, outputs[0] if outputs else None)
        stored = self._store(content, "outfits", f"{job.job_id}{extension_for(mime) or '.png'}")
        logger.info("outfit_generated", extra={"job_id": job.job_id})
        return self._stored_dict(stored)

    def edit_garment(self, job: Job, payload: EditGarmentPayload) -> dict[str, Any]:
        with self.billing.metered(job.job_id, job.business_id, job.customer_id, BillableOperation.IMAGE):
            outputs = self.adapter.predict(
                self.editor_space,
                "/edit_product_image_from_urls",
                {
                    "base_url": payload.base_image_url,
                    "fabric_url": payload.fabric_image_url,
                    "accessory_url": payload.accessory_image_url,
                    "addon_url": payload.addon_image_url,
                    "garment_type": payload.garment_type,
                    "base_color": payload.base_color,
                    "pattern": payload.pattern,
                    "fit": payload.fit,
                    "style_notes": payload.style_notes,
                    "metadata_json": json.dumps(payload.metadata_json) if payload.metadata_json else "",
                    "model_name": EDITOR_MODEL,
                    "aspect_ratio": "1:1",
                    "resolution": "1K",
                },
            )
            image = outputs[0] if outputs else None
            status_text = (outputs[1] if len(outputs) > 1 else "") or ""
            encoded = (outputs[2] if len(outputs) > 2 else "") or ""
            if not image:
                raise InferenceError(
                    f"Image editor returned no image. Status: {status_text}",
                    detail={"space": self.editor_space, "endpoint": "/edit_product_image_from_urls"},
                )
            content, mime = self._image_output(self.editor_space, encoded or image)
            stored = self._store(content, "outfits", f"{job.job_id}{extension_for(mime) or '.png'}")
        return {**self._stored_dict(stored), "status": status_text}

    def _image_output(self, space: str, value: Any) -> tuple[bytes, str]:
        """Image output as bytes: a data URL / base64 string, or a file reference to fetch."""
        remote = RemoteFile.from_output(value)
        if remote is not None:
            return self.adapter.download(space, remote), remote.mime_type or "image/png"
        return decode_data_url(value)

    def _store(self, content: bytes, folder: str, filename: str, resource_type: str = "image") -> StoredObject:
        if self.object_store is None:
            raise ObjectStoreError("No object store configured")
        return self.object_store.upload(content, folder, resource_type=resource_type, filename=filename)

    @staticmethod
    def _stored_dict(stored: StoredObject) -> dict[str, Any]:
        return {"file_url": stored.file_url, "file_public_id": stored.file_public_id}
