"""
Edit Handlers - Event handlers for interactive editing in app.py

This module keeps the NiceGUI event plumbing out of app.py so the main
application file stays focused on layout. All decisions are made by the
InteractionController; handlers only translate events and report errors.
"""

import logging
from typing import Any, Callable, Dict, Tuple

from nicegui import ui

from impact_tree.edit.controller import InteractionController, InteractionState
from impact_tree.errors import ImpactTreeError

logger = logging.getLogger(__name__)


class NiceGuiFrameScheduler:
    """Runs auto-pan ticks with ui.timer; the returned timer is the cancel handle."""

    def schedule_repeating(self, interval: float, callback: Callable[[], None]):
        return ui.timer(interval, callback)


def status_key(state: InteractionState) -> Tuple:
    """What the status line and details column show; drag progress is not part of it."""
    return (state.mode_name, state.pending_category, state.connect_source, state.selection)


def setup_edit_handlers(
    controller: InteractionController,
    refresh_canvas: Callable,
    refresh_status: Callable,
) -> Dict[str, Any]:
    """
    Set up all editing event handlers.

    Args:
        controller: InteractionController instance
        refresh_canvas: Function to redraw the graph
        refresh_status: Function to update mode/selection labels

    Returns:
        Dict with handler functions for binding to UI events
    """

    # Redraws requested while an event is being handled are folded into one
    redraw = {'depth': 0, 'pending': False}
    shown = {'status': status_key(controller.state)}

    def request_redraw():
        if redraw['depth']:
            redraw['pending'] = True
        else:
            refresh_canvas()

    def on_interaction_change(state):
        key = status_key(state)
        if key != shown['status']:
            shown['status'] = key
            refresh_status()
        request_redraw()

    controller.set_on_change(on_interaction_change)
    controller.store.set_on_change(lambda _graph: request_redraw())
    controller.viewport.set_on_change(lambda _view_box: request_redraw())

    def run_safely(action: Callable, *args, **kwargs):
        """Run a controller call, surfacing rejected edits as notifications."""
        redraw['depth'] += 1
        try:
            return action(*args, **kwargs)
        except ImpactTreeError as e:
            logger.info(f"Edit rejected: {e}")
            ui.notify(str(e), type='warning', position='bottom')
            return None
        finally:
            redraw['depth'] -= 1
            if not redraw['depth'] and redraw['pending']:
                redraw['pending'] = False
                refresh_canvas()

    def handle_keyboard(e):
        """Route key presses to the controller. Text inputs are ignored by ui.keyboard."""
        if not e.action.keydown or e.action.repeat:
            return
        run_safely(controller.handle_key, e.key.name)

    def handle_mouse(e):
        """Route interactive_image mouse events (image coordinates) to the controller."""
        x, y = e.image_x, e.image_y
        if e.type == 'mousedown':
            run_safely(controller.pointer_down, x, y)
        elif e.type == 'mousemove':
            run_safely(controller.pointer_move, x, y)
        elif e.type == 'mouseup':
            run_safely(controller.pointer_up, x, y)
        elif e.type == 'click':
            run_safely(controller.click, x, y)
        elif e.type == 'mouseout':
            # A release outside the image never arrives as mouseup
            run_safely(controller.pointer_leave)

    def delete_selection():
        if not controller.delete_selection():
            ui.notify('Nothing selected', position='bottom', timeout=1000)

    return {
        'handle_keyboard': handle_keyboard,
        'handle_mouse': handle_mouse,
        'delete_selection': delete_selection,
        'run_safely': run_safely,
    }
