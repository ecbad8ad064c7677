"""
Staged concurrent load-test orchestrator for the payments service.
"""

__version__ = "0.1.0"
