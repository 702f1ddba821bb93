import hashlib

from kiosk_agent.infrastructure.android.adb_bridge import AdbBridge

DEVICE_ID_PREFIX = "dev-"
DEVICE_ID_HASH_LENGTH = 24


def stable_device_id(brand: str, model: str, android_id: str) -> str:
    raw = f"{brand}|{model}|{android_id}"
    digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()
    return f"{DEVICE_ID_PREFIX}{digest[:DEVICE_ID_HASH_LENGTH]}"


def read_device_identity(bridge: AdbBridge) -> str:
    brand = bridge.shell("getprop", "ro.product.brand").out.strip()
    model = bridge.shell("getprop", "ro.product.model").out.strip()
    android_id = bridge.shell("settings", "get", "secure", "android_id").out.strip()
    if android_id == "null":
        android_id = ""
    return stable_device_id(brand, model, android_id)
