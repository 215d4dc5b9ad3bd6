"""
flowedit — graph mutation and auto-layout engine for a visual
node-and-edge workflow editor.
"""

__version__ = "0.1.0"
