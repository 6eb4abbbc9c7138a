"""
Interactive editing for the impact graph.

This package provides pointer/keyboard editing:
- controller: InteractionController state machine (modes, drag, connect)
- duplicate_guard: DuplicateGuard filter for repeated creation requests
- autopan: AutoPanController that pans the viewport during drags
- handlers: NiceGUI event handlers for app.py integration

Usage:
    from impact_tree.edit.controller import InteractionController
    from impact_tree.edit.handlers import setup_edit_handlers
"""
