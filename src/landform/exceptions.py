"""Custom exceptions for terrain generation."""


class TerrainError(Exception):
    """Base exception for terrain generation errors."""

    pass


class ConfigurationError(TerrainError):
    """Raised when generation settings are rejected before a run starts.

    Carries every problem found so callers can report them together.
    """

    def __init__(self, errors: list[str] | str) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class InvalidDimensionsError(ConfigurationError):
    """Raised when grid dimensions do not suit an enabled stage."""

    pass


class BiomeConfigurationError(ConfigurationError):
    """Raised when the Voronoi biome table or site list is unusable."""

    pass
