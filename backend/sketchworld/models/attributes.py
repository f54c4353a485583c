"""AttributeSet — the boolean/scalar property bag carried by every world object."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, fields, replace
from typing import Any

# Physical/reactive flags, in the order the catalog and the UI list them.
FLAG_NAMES: tuple[str, ...] = (
    "floats",
    "hovers",
    "falls",
    "solid",
    "heavy",
    "burns",
    "explodes",
    "wooden",
    "metal",
    "rusted",
    "magnetic",
    "ice",
    "lightning",
    "blows",
    "drips",
    "douses",
    "flies",
    "walks",
    "drives",
    "propelled",
    "space",
    "heal",
    "timer",
)

PROVENANCE_NAMES: tuple[str, ...] = ("generating", "user_generated_obj")


@dataclass
class AttributeSet:
    """Mutable attribute bag. One instance per WorldObject, never shared."""

    floats: bool = False
    hovers: bool = False
    falls: bool = True
    solid: bool = True
    heavy: bool = False
    burns: bool = False
    explodes: bool = False
    wooden: bool = False
    metal: bool = False
    rusted: bool = False
    magnetic: bool = False
    ice: bool = False
    lightning: bool = False
    blows: bool = False
    drips: bool = False
    douses: bool = False
    flies: bool = False
    walks: bool = False
    drives: bool = False
    propelled: bool = False
    space: bool = False
    heal: bool = False
    timer: bool = False

    angle: float = 0.0
    float_offset: float = 0.0

    generating: bool = False
    user_generated_obj: bool = False

    @classmethod
    def defaults(cls) -> AttributeSet:
        """Physically plausible baseline: solid and falling, nothing else."""
        return cls()

    @classmethod
    def zeros(cls) -> AttributeSet:
        """Everything false/0. Used as the accumulator for classifier output."""
        return cls(falls=False, solid=False)

    @classmethod
    def from_names(cls, names: Iterable[str]) -> AttributeSet:
        """Build from a list of attribute names, starting from :meth:`zeros`.

        Only names that are flags in the schema are applied; anything else the
        classifier returns is ignored.
        """
        attrs = cls.zeros()
        wanted = {n.strip().lower() for n in names if isinstance(n, str)}
        for name in FLAG_NAMES:
            if name in wanted:
                setattr(attrs, name, True)
        return attrs

    def merged(self, overrides: Mapping[str, Any]) -> AttributeSet:
        """Return a copy with ``overrides`` applied. Unknown keys raise."""
        valid = {f.name for f in fields(self)}
        unknown = set(overrides) - valid
        if unknown:
            raise KeyError(f"Unknown attribute(s): {sorted(unknown)}")
        return replace(self, **dict(overrides))

    def copy(self) -> AttributeSet:
        return replace(self)

    def is_set(self, name: str) -> bool:
        """True when ``name`` is a flag of the schema and it is set."""
        return name in FLAG_NAMES and bool(getattr(self, name))

    def true_flags(self) -> list[str]:
        return [name for name in FLAG_NAMES if getattr(self, name)]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
