from loadgen.engine import LoadEngine, Phase
from loadgen.errors import ConfigError
from loadgen.profile import LoadProfile, Mode

__all__ = ["ConfigError", "LoadEngine", "LoadProfile", "Mode", "Phase"]
