"""
zkvoid Node
Configuration and logging setup.
"""

from zkvoid.node.config import MixerConfig, setup_logging

__all__ = [
    "MixerConfig",
    "setup_logging",
]
