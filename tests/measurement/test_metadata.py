"""
Garment config -> generator metadata and prompt.
"""
from app.schemas.payloads import GarmentConfig
from app.services.measurement.metadata import (
    BRAND_PROFILE,
    DEFAULT_BASE_PROMPT,
    build_construction_metadata,
    build_metadata_from_config,
    build_prompt,
)


def test_prompt_default_and_user_direction():
    assert build_prompt() == DEFAULT_BASE_PROMPT
    assert build_prompt("Make it elegant") == f"{DEFAULT_BASE_PROMPT} Additional user direction:\nMake it elegant"


def test_construction_falls_back_to_defaults():
    construction = build_construction_metadata("dress", {"neckline": "V-neck", "sleeve_style": "bat wing"})
    assert construction == {"neckline": "V-neck", "sleeve": "short sleeve", "bodice": "fitted bodice"}


def test_agbada_defaults():
    construction = build_construction_metadata("male_agbada")
    assert construction["inner_kaftan_neckline"] == "V-slit"
    assert construction["embroidery"] == "strict chest panel embroidery"
    assert construction["sleeves"] == "wide agbada sleeve (classic)"


def test_unknown_garment_has_no_construction():
    assert build_construction_metadata("cape", {"neckline": "V-neck"}) == {}


def test_metadata_references_in_order():
    config = GarmentConfig(
        garment_type="dress",
        gender="female",
        fabric_ref_id="fabric_1",
        embroidery_ref_id="embro_1",
        has_strict_embroidery=True,
        inspiration_image_urls=["https://img/1.jpg", "https://img/2.jpg"],
        silhouette_image_url="https://img/s.jpg",
    )
    metadata = build_metadata_from_config(config)

    assert metadata["references"] == ["fabric_1", "embro_1", "https://img/1.jpg", "https://img/2.jpg", "https://img/s.jpg"]
    assert metadata["fabric"] == {"use_reference_image": True}
    assert metadata["colors"] == {"use_reference_image": True}
    assert metadata["embroidery_reference"]["strict_match"] is True
    assert metadata["embroidery_reference"]["apply_to"] == "front chest panel"
    assert metadata["brand_profile"] == BRAND_PROFILE


def test_metadata_without_references():
    metadata = build_metadata_from_config(GarmentConfig(garment_type="suit"))
    assert metadata["references"] == []
    assert "embroidery_reference" not in metadata
    assert metadata["construction"] == {}
    assert metadata["aesthetic_keywords"] == []
