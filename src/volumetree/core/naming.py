"""Unique internal names, component ids and display labels."""

from __future__ import annotations

import random
import re
import string
import time
from typing import Callable, Collection, Iterable

from .volume import Volume

_BASE36 = string.digits + string.ascii_lowercase

_INDEX_SUFFIX = re.compile(r"_\d+$")


def strip_index_suffix(name: str) -> str:
    """Remove one trailing ``_<digits>`` suffix (``PMT_3`` -> ``PMT``)."""
    return _INDEX_SUFFIX.sub("", name)


def template_base(label: str) -> str:
    """Template label from a saved-object name (``PMT.json`` -> ``PMT``)."""
    return label.split(".")[0]


class NameGenerator:
    """Generates fresh internal names of the form ``<type>_<epoch-ms>_<token>``.

    Both the clock and the random source are injectable so that callers can
    make naming deterministic.
    """

    def __init__(
        self,
        clock: Callable[[], float] | None = None,
        rng: random.Random | None = None,
        token_length: int = 8,
    ) -> None:
        self._clock = clock or time.time
        self._rng = rng or random.Random()
        self._token_length = token_length

    def _timestamp(self) -> int:
        return int(self._clock() * 1000)

    def _token(self) -> str:
        return "".join(self._rng.choice(_BASE36) for _ in range(self._token_length))

    def unique_name(self, kind: str, existing: Collection[str]) -> str:
        """Return a name for a new ``kind`` volume not present in ``existing``."""
        while True:
            candidate = f"{kind}_{self._timestamp()}_{self._token()}"
            if candidate not in existing:
                return candidate

    def component_id(self) -> str:
        return f"component_{self._timestamp()}_{self._token()}"

    def instance_id(self, root_name: str) -> str:
        return f"instance-{root_name}-{self._timestamp()}-{self._token()}"


def display_name(kind: str, volumes: Iterable[Volume]) -> str:
    """Default label for a new volume: ``Box_1``, ``Sphere_3``...

    The number is one more than the count of existing volumes of that type.
    """
    count = sum(1 for volume in volumes if volume.type == kind)
    return f"{kind[:1].upper()}{kind[1:]}_{count + 1}"


def template_display_name(base: str, volumes: Iterable[Volume]) -> str:
    """Label for a new instance of template ``base``: ``<base>_<serial>``.

    ``serial`` is the smallest non-negative integer not already used by an
    existing display name of that template.
    """
    pattern = re.compile(rf"^{re.escape(base)}_(\d+)$")
    used = set()
    for volume in volumes:
        match = pattern.match(volume.display_name or "")
        if match:
            used.add(int(match.group(1)))
    serial = 0
    while serial in used:
        serial += 1
    return f"{base}_{serial}"
