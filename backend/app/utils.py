import base64
import binascii

DEFAULT_MIME_TYPE = "application/octet-stream"


def base64_to_image_bytes(base64_str: str) -> bytes:
    """Dekodiert einen Base64-String, ein optionaler Data-URI-Präfix wird entfernt."""
    if "," in base64_str:
        base64_str = base64_str.split(",", 1)[1]
    try:
        return base64.b64decode(base64_str, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Ungültige Base64-Daten: {e}") from e


def image_bytes_to_data_uri(image_bytes: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(image_bytes).decode()
    return f"data:{mime_type or DEFAULT_MIME_TYPE};base64,{encoded}"
