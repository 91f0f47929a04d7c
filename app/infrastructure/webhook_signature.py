import hashlib
import hmac


def _sign(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def verify_duffel_signature(secret: str, body: bytes, header: str | None) -> bool:
    """
    Checks the `x-duffel-signature` header.

    Accepts either a bare hex digest of the body or the timestamped
    `t=<ts>,v1=<hex>` form, where the signed payload is `<ts>.<body>`.
    """
    if not header:
        return False
    header = header.strip()
    if "=" not in header:
        return hmac.compare_digest(_sign(secret, body), header)

    parts = dict(part.split("=", 1) for part in header.split(",") if "=" in part)
    timestamp = parts.get("t")
    signature = parts.get("v1")
    if not timestamp or not signature:
        return False
    expected = _sign(secret, timestamp.encode() + b"." + body)
    return hmac.compare_digest(expected, signature)
