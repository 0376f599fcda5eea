"""
Garment config -> generator metadata and prompt.

Construction options per garment type come from CONSTRUCTION_SCHEMAS: an
unknown or missing selection falls back to the field default, so the
generator always receives a complete, valid construction block.
"""
from typing import Any

from app.schemas.payloads import GarmentConfig


DEFAULT_BASE_PROMPT = (
    "Generate a clean, garment-only render of the requested outfit using the provided reference images and metadata. "
    "Use the fabric swatch and embroidery references exactly as given, without changing their colours or motifs. "
    "Do not show any mannequin, human body, or face. Show only the garment on a plain white background."
)

BRAND_PROFILE = {
    "brand_name": "Qlozet",
    "tone": "modern bespoke fashion",
    "target_market": "fashion customers using Qlozet",
    "price_tier": "mid to premium",
}

RENDER_PREFS = {
    "background": "plain white background",
    "camera": "front-facing garment-only view",
    "lighting": "soft studio lighting",
    "mannequin": "none",
    "pose": "garment-only presentation",
    "cropping": "full garment centered with some margin",
}

CONSTRUCTION_SCHEMAS: dict[str, Any] = {
    "version": "1.0.0",
    "garment_types": {
        "dress": {
            "label": "Dress",
            "description": "One-piece dress with bodice and skirt.",
            "fields": {
                "neckline": {
                    "type": "enum",
                    "options": ["round neck", "V-neck", "sweetheart", "square", "button-front neckline"],
                    "default": "round neck",
                    "metadata_key": "neckline",
                },
                "sleeve_style": {
                    "type": "enum",
                    "options": ["sleeveless", "short sleeve", "long sleeve", "puff sleeve", "cap sleeve"],
                    "default": "short sleeve",
                    "metadata_key": "sleeve",
                },
                "bodice_fit": {
                    "type": "enum",
                    "options": ["fitted bodice", "semi-fitted bodice", "relaxed bodice"],
                    "default": "fitted bodice",
                    "metadata_key": "bodice",
                },
            },
        },
        "male_agbada": {
            "label": "Men's Agbada Set",
            "description": "Three-piece traditional agbada: robe, inner kaftan, and trousers.",
            "fields": {
                "robe_length": {
                    "type": "enum",
                    "options": ["full length", "three-quarter length"],
                    "default": "full length",
                    "metadata_key": "robe",
                },
                "robe_sleeve": {
                    "type": "enum",
                    "options": ["wide agbada sleeve (classic)"],
                    "default": "wide agbada sleeve (classic)",
                    "metadata_key": "sleeves",
                },
                "inner_kaftan_neckline": {
                    "type": "enum",
                    "options": ["round neck", "V-slit", "embroidery-framed slit"],
                    "default": "V-slit",
                    "metadata_key": "inner_kaftan_neckline",
                },
                "trousers_fit": {
                    "type": "enum",
                    "options": ["straight", "slightly tapered"],
                    "default": "straight",
                    "metadata_key": "trousers_fit",
                },
                "embroidery_panel": {
                    "type": "enum",
                    "options": ["strict chest panel embroidery", "subtle neckline embroidery", "no embroidery"],
                    "default": "strict chest panel embroidery",
                    "metadata_key": "embroidery",
                },
            },
        },
    },
}


def build_prompt(user_prompt: str | None = None) -> str:
    if not user_prompt:
        return DEFAULT_BASE_PROMPT
    return f"{DEFAULT_BASE_PROMPT} Additional user direction:\n{user_prompt}"


def _resolve_field(field: dict[str, Any], raw: Any) -> Any:
    kind = field.get("type")
    default = field.get("default")
    if kind == "enum":
        options = field.get("options") or []
        if isinstance(raw, str) and raw in options:
            return raw
        if isinstance(default, str):
            return default
        return options[0] if options else None
    if kind == "boolean":
        if isinstance(raw, bool):
            return raw
        return default if isinstance(default, bool) else False
    # free text
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    return default if isinstance(default, str) else None


def build_construction_metadata(garment_type: str, selections: dict[str, Any] | None = None) -> dict[str, Any]:
    """Resolve UI selections against the garment's schema. Unknown garment types give {}."""
    schema = CONSTRUCTION_SCHEMAS["garment_types"].get(garment_type)
    if not schema:
        return {}
    selections = selections or {}
    construction: dict[str, Any] = {}
    for key, field in schema["fields"].items():
        metadata_key = field.get("metadata_key")
        if not metadata_key:
            continue
        value = _resolve_field(field, selections.get(key))
        if value is not None:
            construction[metadata_key] = value
    return construction


def build_metadata_from_config(config: GarmentConfig) -> dict[str, Any]:
    metadata: dict[str, Any] = {
        "garment_type": config.garment_type,
        "gender": config.gender,
        "occasion": config.occasion,
        "aesthetic_keywords": list(config.aesthetic_keywords),
        "fit": config.fit,
        "fit_notes": config.fit_notes,
        "measurement_profile": dict(config.measurement_profile),
        "construction": build_construction_metadata(config.garment_type, config.construction_selections),
        "fabric": {},
        "colors": {},
        "brand_profile": dict(BRAND_PROFILE),
        "render_prefs": dict(RENDER_PREFS),
        "references": [],
    }
    if config.fabric_ref_id:
        metadata["fabric"]["use_reference_image"] = True
        metadata["colors"]["use_reference_image"] = True
        metadata["references"].append(config.fabric_ref_id)
    if config.embroidery_ref_id:
        strict = bool(config.has_strict_embroidery)
        metadata["embroidery_reference"] = {
            "use_reference_image": True,
            "strict_match": strict,
            "no_style_variation": strict,
            "apply_to": "front chest panel",
            "panel_masking": {
                "description": "Apply embroidery only inside the chest panel mask.",
                "mask_shape": "rectangular chest panel with angled cutout as in reference.",
                "mask_reference_image": config.embroidery_ref_id,
            },
            "metadata_notes": "Copy the embroidery exactly, no creative edits. Motifs and layout must match reference.",
        }
        metadata["references"].append(config.embroidery_ref_id)
    metadata["references"].extend(config.inspiration_image_urls)
    if config.silhouette_image_url:
        metadata["references"].append(config.silhouette_image_url)
    return metadata
