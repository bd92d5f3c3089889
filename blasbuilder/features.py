from dataclasses import dataclass

# Flags understood by the build; anything else is accepted and simply never queried.
KNOWN_FEATURES = ("static", "system", "cblas", "lapacke", "cache")

FEATURE_ENV_PREFIX = "CARGO_FEATURE_"


def _normalize(name):
    return name.strip().lower().replace("-", "_")


@dataclass(frozen=True)
class FeatureSet:
    """Immutable set of enabled build options. A flag that is absent is disabled."""

    enabled: frozenset = frozenset()

    @classmethod
    def of(cls, *names):
        return cls(frozenset(_normalize(name) for name in names))

    @classmethod
    def from_sources(cls, variables, config_features=None, cli_features=()):
        names = set()
        for key in variables:
            if key.startswith(FEATURE_ENV_PREFIX):
                names.add(_normalize(key[len(FEATURE_ENV_PREFIX):]))
        for name, value in (config_features or {}).items():
            if value:
                names.add(_normalize(name))
        names.update(_normalize(name) for name in cli_features)
        return cls(frozenset(names))

    def is_enabled(self, name):
        return _normalize(name) in self.enabled

    @property
    def static(self):
        return self.is_enabled("static")

    @property
    def system(self):
        return self.is_enabled("system")

    @property
    def cblas(self):
        return self.is_enabled("cblas")

    @property
    def lapacke(self):
        return self.is_enabled("lapacke")

    @property
    def cache(self):
        return self.is_enabled("cache")
