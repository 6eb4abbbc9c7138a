"""
Main NiceGUI application for Impact Tree.

Renders the impact graph as SVG over ui.interactive_image and routes
mouse and keyboard input to the InteractionController. Toolbar buttons
switch modes, control the view and import/export JSON snapshots.
"""

import logging
import sys

from dotenv import load_dotenv
from nicegui import ui

load_dotenv()

from impact_tree.config import get_editor_settings
from impact_tree.edit.controller import InteractionController
from impact_tree.edit.handlers import NiceGuiFrameScheduler, setup_edit_handlers
from impact_tree.errors import SnapshotError
from impact_tree.graph_store import GraphStore
from impact_tree.graph_view import GraphView
from impact_tree.node_types import CONNECT_SHORTCUT, SELECT_SHORTCUT, get_node_type_catalog
from impact_tree.snapshot import export_filename, export_json, import_json
from impact_tree.viewport import ScreenRect, ViewportModel

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
logger = logging.getLogger(__name__)

CANVAS_WIDTH = 1200
CANVAS_HEIGHT = 800
BLANK_CANVAS = (
    f'data:image/svg+xml;utf8,<svg xmlns="http://www.w3.org/2000/svg" '
    f'width="{CANVAS_WIDTH}" height="{CANVAS_HEIGHT}"><rect width="100%" height="100%" fill="white"/></svg>'
)


# UI Construction - encapsulated in page function so each client gets its own editor
@ui.page('/')
def main_page():
    settings = get_editor_settings()
    catalog = get_node_type_catalog()
    store = GraphStore(catalog=catalog)
    store.seed_demo_data()
    viewport = ViewportModel(
        screen_rect=ScreenRect(0, 0, CANVAS_WIDTH, CANVAS_HEIGHT),
        min_scale=settings.min_zoom,
        max_scale=settings.max_zoom,
    )
    controller = InteractionController(
        store=store,
        viewport=viewport,
        catalog=catalog,
        settings=settings,
        scheduler=NiceGuiFrameScheduler(),
    )
    graph_view = GraphView()
    widgets = {}

    def refresh_canvas():
        if 'canvas' in widgets:
            widgets['canvas'].content = graph_view.render_svg(
                controller.graph, controller.viewport, controller.state,
            )

    def refresh_status():
        if 'status' not in widgets:
            return
        state = controller.state
        text = f'Mode: {state.mode_name}'
        if state.pending_category:
            text += f' ({catalog.get(state.pending_category).label})'
        if state.connect_source:
            source = controller.graph.nodes.get(state.connect_source)
            text += f' from {source.name if source else "?"}'
        widgets['status'].text = text
        render_details()

    edit_handlers = setup_edit_handlers(
        controller=controller,
        refresh_canvas=refresh_canvas,
        refresh_status=refresh_status,
    )
    run_safely = edit_handlers['run_safely']

    # Global keyboard handler (ignores text inputs by default)
    ui.keyboard(on_key=edit_handlers['handle_keyboard'])

    # --- Toolbar ---
    with ui.row().classes('items-center gap-2 p-2'):
        ui.label('Impact Tree').classes('text-lg font-bold')
        ui.separator().props('vertical')
        for category in catalog.categories():
            config = catalog.get(category)
            ui.button(
                f'{config.label} ({config.shortcut.upper()})',
                on_click=lambda c=category: controller.choose_node_type(c),
            ).props('dense no-caps').style(f'background-color: {config.color} !important').tooltip(config.tooltip)
        ui.button(f'Connect ({CONNECT_SHORTCUT.upper()})',
                  on_click=controller.enter_connect_mode).props('dense no-caps outline')
        ui.button(f'Select ({SELECT_SHORTCUT.upper()})',
                  on_click=controller.enter_select_mode).props('dense no-caps outline')
        ui.separator().props('vertical')
        ui.button(icon='zoom_in', on_click=lambda: controller.zoom_in()).props('dense flat').tooltip('Zoom in')
        ui.button(icon='zoom_out', on_click=lambda: controller.zoom_out()).props('dense flat').tooltip('Zoom out')
        ui.button(icon='fit_screen', on_click=controller.reset_view).props('dense flat').tooltip('Reset view')
        ui.button(icon='center_focus_strong', on_click=controller.center_view).props('dense flat').tooltip('Center view')
        ui.separator().props('vertical')
        ui.button(icon='delete', on_click=edit_handlers['delete_selection']).props('dense flat').tooltip('Delete selection')
        ui.button(icon='note_add', on_click=controller.new_tree).props('dense flat').tooltip('New tree')
        ui.button(icon='download', on_click=lambda: ui.download(
            export_json(controller.graph).encode('utf-8'),
            export_filename(controller.graph.tree, 'json'),
        )).props('dense flat').tooltip('Export JSON')

        def handle_upload(e):
            try:
                state = import_json(e.content.read().decode('utf-8'))
            except (SnapshotError, UnicodeDecodeError) as err:
                logger.warning(f"Import of {e.name} failed: {err}")
                ui.notify(f'Import failed: {err}', type='negative', position='bottom', multi_line=True)
                return
            controller.load(state)
            ui.notify(f"Imported '{state.tree.name}'", type='positive', position='bottom')

        ui.upload(on_upload=handle_upload, auto_upload=True, label='Import JSON').props('accept=.json dense flat')

    widgets['status'] = ui.label().classes('px-2 text-sm text-gray-600')

    with ui.row().classes('w-full no-wrap gap-2 px-2'):
        widgets['canvas'] = ui.interactive_image(
            BLANK_CANVAS,
            on_mouse=edit_handlers['handle_mouse'],
            events=['mousedown', 'mousemove', 'mouseup', 'click', 'mouseout'],
            cross=False,
        ).style(f'width: {CANVAS_WIDTH}px; height: {CANVAS_HEIGHT}px; border: 1px solid #e0e0e0;')
        widgets['details'] = ui.column().classes('w-72 gap-2')

    def render_details():
        """Minimal node details: name edit and measurement summary."""
        container = widgets.get('details')
        if container is None:
            return
        container.clear()
        node_id = controller.state.selected_node_id
        node = controller.graph.nodes.get(node_id) if node_id else None
        with container:
            if node is None:
                ui.label('Select a node to see its details').classes('text-gray-500 text-sm')
                return
            ui.label(catalog.get_type_display_name(node.node_type)).classes('text-xs text-gray-500')
            ui.input('Name', value=node.name).on(
                'blur', lambda e, nid=node.id: run_safely(controller.edit_node, nid, name=e.sender.value),
            ).classes('w-full')
            links = controller.graph.relationships_for(node.id)
            if links:
                ui.label(f'{len(links)} relationship(s)').classes('text-xs text-gray-500')
            for m in controller.graph.measurements_for(node.id):
                ui.label(f'{m.metric_name}: {m.actual_value} / {m.expected_value}').classes('text-sm')
            performance = controller.graph.node_performance(node.id)
            if performance is not None:
                ui.label('On track' if performance else 'Behind target').classes(
                    'text-green-700' if performance else 'text-red-700')

    refresh_status()
    refresh_canvas()

    ui.context.client.on_disconnect(controller.close)


if __name__ in {"__main__", "__mp_main__"}:
    ui.run(
        title='Impact Tree',
        port=8082,
        reload=not getattr(sys, 'frozen', False),
    )
