import json, hashlib

# Bookkeeping fields that change on every write without changing content
VOLATILE = ("updatedAt", "revision", "writer")

def value_hash(value) -> str:
    return hashlib.sha256(json.dumps(value, sort_keys=True, default=str).encode()).hexdigest()

def document_hash(doc: dict) -> str:
    body = {k: v for k, v in (doc or {}).items() if k not in VOLATILE}
    return value_hash(body)
