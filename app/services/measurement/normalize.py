"""
Normalize heterogeneous model outputs into {measurement name: value}.

Backends answer in several shapes: a Gradio dataframe ({headers, data}),
a JSON object or string, a list of [name, value] pairs, or a bare positional
list whose order follows MEASUREMENT_NAMES.
"""
import json
from typing import Any


# Output order of the body-measurement models
MEASUREMENT_NAMES = (
    "height",
    "shoulder_breadth",
    "shoulder_to_crotch",
    "chest",
    "waist",
    "hip",
    "arm_length",
    "bicep",
    "forearm",
    "wrist",
    "neck",
    "inseam",
    "thigh",
    "calf",
    "ankle",
)

_NAME_HEADERS = {"measurement", "measurements", "name", "metric", "key", "body part"}


def _to_number(value: Any) -> float | int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip().removesuffix("cm").strip()
        try:
            number = float(text)
        except ValueError:
            return None
        return int(number) if number.is_integer() and "." not in text else number
    return None


def _key(name: Any) -> str:
    return str(name).strip().lower().replace(" ", "_").replace("-", "_")


def _from_pairs(rows: list) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for row in rows:
        if not isinstance(row, (list, tuple)) or len(row) < 2:
            continue
        number = _to_number(row[1])
        if number is not None:
            out[_key(row[0])] = number
    return out


def _from_dataframe(frame: dict[str, Any]) -> dict[str, Any]:
    headers = frame.get("headers") or []
    rows = frame.get("data") or []
    if not rows:
        return {}
    if len(headers) == 2 or (headers and str(headers[0]).strip().lower() in _NAME_HEADERS):
        return _from_pairs(rows)
    # Wide frame: one row, one column per measurement
    out: dict[str, Any] = {}
    for name, value in zip(headers, rows[0]):
        number = _to_number(value)
        if number is not None:
            out[_key(name)] = number
    return out


def _from_positional(values: list) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for i, value in enumerate(values):
        number = _to_number(value)
        if number is None:
            continue
        name = MEASUREMENT_NAMES[i] if i < len(MEASUREMENT_NAMES) else f"measurement_{i}"
        out[name] = number
    return out


def measurements_from_output(value: Any) -> dict[str, Any]:
    """Best-effort name -> number map. Unrecognized shapes give {}."""
    if value is None:
        return {}
    if isinstance(value, str):
        try:
            return measurements_from_output(json.loads(value))
        except json.JSONDecodeError:
            return {}
    if isinstance(value, dict):
        if "headers" in value and "data" in value:
            return _from_dataframe(value)
        for key in ("measurements", "predictions"):
            if key in value:
                return measurements_from_output(value[key])
        out = {}
        for name, raw in value.items():
            number = _to_number(raw)
            if number is not None:
                out[_key(name)] = number
        return out
    if isinstance(value, (list, tuple)):
        if value and all(isinstance(v, (list, tuple)) for v in value):
            return _from_pairs(list(value))
        return _from_positional(list(value))
    return {}


def first_measurements(*candidates: Any) -> dict[str, Any]:
    """First non-empty normalization among candidates."""
    for candidate in candidates:
        out = measurements_from_output(candidate)
        if out:
            return out
    return {}


def _at(outputs: Any, index: int) -> Any:
    if isinstance(outputs, (list, tuple)) and len(outputs) > index:
        return outputs[index]
    return None


def prediction_result(outputs: Any) -> dict[str, Any]:
    """RunPrediction: [predictions_table, predictions_json]."""
    table, predictions = _at(outputs, 0), _at(outputs, 1)
    return {
        "measurements": first_measurements(predictions, table),
        "predictions_table": table,
        "predictions_json": predictions,
    }


def auto_mask_result(outputs: Any) -> dict[str, Any]:
    """AutoMaskPredict: predictions sit at index 2; the rest are preview images."""
    predictions = _at(outputs, 2)
    return {"measurements": first_measurements(predictions), "predictions": predictions}


def video_result(outputs: Any) -> dict[str, Any]:
    candidates = list(outputs) if isinstance(outputs, (list, tuple)) else [outputs]
    return {"measurements": first_measurements(*candidates), "outputs": outputs}


def passthrough_result(output: Any) -> Any:
    return output
