"""
Impact Tree: interactive editor for impact graphs.

Business metrics, product metrics and initiatives are placed on a canvas
and connected by typed relationships. The editing engine (graph store,
interaction controller, viewport and auto-pan) lives in this package;
`app.py` hosts it in a NiceGUI page.
"""

__version__ = "0.1.0"
