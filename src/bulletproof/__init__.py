"""BULLETPROOF - Pre-push guardian that selects, explains and hands off project checks."""

__version__ = "0.1.0"

from bulletproof.config import BulletproofConfig, load_config

__all__ = ["BulletproofConfig", "load_config", "__version__"]
