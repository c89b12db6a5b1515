"""
The feature set: which optional material inputs a shader variant supports.
"""

from ..errors import UnknownFeature
from ..utils import ReadOnlyDict
from ..utils.enums import Feature, FeatureParam


# Defaults for the numeric parameters. Every feature set has all of them.
PARAM_DEFAULTS = {
    FeatureParam.TEXTURE_BINDING: 0,
    FeatureParam.LOCATION_OFFSET: 0,
}

# Flags that only make sense when another flag is also set. The resolver
# raises MissingFeatureBinding when a tag needs the dependency.
FEATURE_REQUIREMENTS = {
    Feature.DIFFUSE_TEXTURE: Feature.TEXTURES,
    Feature.SPECULAR_TEXTURE: Feature.TEXTURES,
    Feature.EMISSIVE_TEXTURE: Feature.TEXTURES,
}


class FeatureSet(ReadOnlyDict):
    """An immutable, hashable set of features.

    Flags can be given as positional names or as keyword booleans; numeric
    parameters as keyword integers::

        FeatureSet("DIFFUSE_TEXTURE", "TEXTURES", TEXTURE_BINDING=2)
        FeatureSet({"NORMAL": True})

    Keys must come from ``Feature`` or ``FeatureParam``; anything else raises
    ``UnknownFeature``. Flags that are False are dropped and parameters that
    are not given get their default, so two feature sets are equal iff they
    describe the same variant.
    """

    __slots__ = []

    def __init__(self, *flags, **values):
        items = {}
        for flag in flags:
            if isinstance(flag, dict):
                items.update(flag)
            elif isinstance(flag, str):
                items[flag] = True
            else:
                # Any other iterable of flag names
                for name in flag:
                    items[name] = True
        items.update(values)

        normalized = dict(PARAM_DEFAULTS)
        for key, value in items.items():
            if key in Feature:
                if not isinstance(value, bool):
                    raise TypeError(
                        f"Feature flag {key} must be a bool, not {value.__class__.__name__}"
                    )
                if value:
                    normalized[key] = True
            elif key in FeatureParam:
                if isinstance(value, bool) or not isinstance(value, int):
                    raise TypeError(
                        f"Feature parameter {key} must be an int, not {value.__class__.__name__}"
                    )
                if value < 0:
                    raise ValueError(f"Feature parameter {key} must be >= 0, got {value}")
                normalized[key] = value
            else:
                raise UnknownFeature(
                    f"Unknown feature {key!r}, expected one of "
                    + ", ".join(list(Feature) + list(FeatureParam))
                )

        # Canonical key order, so that iteration and repr are deterministic
        ordered = {}
        for key in list(Feature) + list(FeatureParam):
            if key in normalized:
                ordered[key] = normalized[key]
        super().__init__(ordered)

    def __repr__(self):
        flags = [repr(key) for key in self.flags]
        params = [f"{key}={self[key]}" for key in FeatureParam]
        return f"FeatureSet({', '.join(flags + params)})"

    def __contains__(self, key):
        # Parameters are always present, but are not flags; `in` tests flags.
        if key in FeatureParam:
            return False
        return dict.__contains__(self, key)

    @property
    def flags(self):
        """The tuple of flags that are set, in canonical order."""
        return tuple(key for key in Feature if dict.__contains__(self, key))

    def param(self, name):
        """Get the value of a numeric parameter."""
        if name not in FeatureParam:
            raise UnknownFeature(f"Unknown feature parameter {name!r}")
        return self[name]

    def missing_requirements(self):
        """Get a list of (flag, required_flag) tuples that are not fulfilled."""
        return [
            (flag, required)
            for flag, required in FEATURE_REQUIREMENTS.items()
            if flag in self and required not in self
        ]

    def with_features(self, *flags, **values):
        """Get a new feature set with the given flags/parameters added or changed."""
        items = dict(self)
        for flag in flags:
            items[flag] = True
        items.update(values)
        return FeatureSet(items)


def as_feature_set(features):
    """Turn a FeatureSet, dict or iterable of flag names into a FeatureSet."""
    if isinstance(features, FeatureSet):
        return features
    elif features is None:
        return FeatureSet()
    elif isinstance(features, (dict, str)):
        return FeatureSet(features)
    else:
        return FeatureSet(tuple(features))
