import secrets


class TokenGenerator:
    def __init__(self, num_bytes: int = 16):
        if num_bytes < 16:
            raise ValueError("share tokens need at least 16 random bytes")
        self.num_bytes = num_bytes

    def new_token(self) -> str:
        return secrets.token_hex(self.num_bytes)


def redact(token: str) -> str:
    return f"{token[:6]}..." if len(token) > 6 else "***"
