import uuid


def generate_code(prefix: str) -> str:
    return f"{prefix.strip().upper()}-{uuid.uuid4()}"
