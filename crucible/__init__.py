"""
Crucible Monitor - real-time match and connection classification
for console game sessions observed through a network appliance.
"""

from .__version__ import __version__

__all__ = ["__version__"]
