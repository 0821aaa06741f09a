"""Color normalization for the placement document."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from ..errors import FormatError

FALLBACK_COLOR = (0.7, 0.7, 0.7, 1.0)


def parse_color(value: Any) -> dict[str, float] | None:
    """Normalize a color to ``{r, g, b, a}`` with components in [0, 1].

    Accepts ``[r, g, b]``, ``[r, g, b, a]`` or a mapping with ``r``, ``g``,
    ``b`` and optionally ``a`` (or ``opacity``). Alpha defaults to 1.

    Returns:
        The normalized color, or None when ``value`` is None

    Raises:
        FormatError: If the value cannot be read as a color
    """
    if value is None:
        return None
    if isinstance(value, Mapping):
        alpha = value.get("a", value.get("opacity", 1.0))
        channels = (value.get("r"), value.get("g"), value.get("b"), alpha)
    elif isinstance(value, Sequence) and not isinstance(value, str) and len(value) in (3, 4):
        channels = (*value, 1.0) if len(value) == 3 else tuple(value)
    else:
        raise FormatError(f"Invalid color {value!r}")

    try:
        r, g, b, a = (min(max(float(c), 0.0), 1.0) for c in channels)
    except (TypeError, ValueError) as exc:
        raise FormatError(f"Invalid color {value!r}") from exc
    return {"r": r, "g": g, "b": b, "a": a}


def resolve_color(
    color: Any,
    material: Any = None,
    fallback: Sequence[float] = FALLBACK_COLOR,
) -> dict[str, float]:
    """Pick the effective color of a volume.

    Order: the volume's own color, then its material's default color, then
    ``fallback``.
    """
    explicit = parse_color(color)
    if explicit is not None:
        return explicit
    material_color = getattr(material, "color", None)
    if material_color is not None:
        return parse_color(material_color)
    return parse_color(fallback)
