from typing import Iterable, List

from knock_on_gpus.errors import ConfigurationError


def parse_device_list(text: str) -> List[int]:
    """Parse a comma-separated list of non-negative integers.

    Empty tokens are skipped, so ``"0,1,,2,"`` parses to ``[0, 1, 2]``.
    Input order is preserved. Raises ConfigurationError naming the first
    token that is not a non-negative ASCII integer.
    """
    numbers = []
    for raw in text.split(","):
        token = raw.strip()
        if not token:
            continue
        if not (token.isascii() and token.isdecimal()):
            raise ConfigurationError(f"Invalid device number: {token}", token=token)
        numbers.append(int(token))
    return numbers


def format_device_list(devices: Iterable[int]) -> str:
    return ",".join(str(d) for d in devices)
