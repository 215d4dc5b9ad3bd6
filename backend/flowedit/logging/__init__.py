"""
Logging Module

Opt-in logging setup for hosts of the flow editor core.
"""
from flowedit.logging.log_setup import configure_logging

__all__ = ['configure_logging']
