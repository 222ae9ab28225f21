"""Date helpers shared across domains"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as naive UTC, the form every DateTime column stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def base36(number: int) -> str:
    """Encode a non-negative integer in lowercase base 36"""
    alphabet = "0123456789abcdefghijklmnopqrstuvwxyz"
    if number == 0:
        return "0"
    out = []
    while number:
        number, rem = divmod(number, 36)
        out.append(alphabet[rem])
    return "".join(reversed(out))


def epoch_millis(value: datetime) -> int:
    return int(value.replace(tzinfo=timezone.utc).timestamp() * 1000)
