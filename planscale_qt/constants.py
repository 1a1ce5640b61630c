ROOT_LAYOUT_MARGINS = (0, 0, 0, 0)
ROOT_LAYOUT_SPACING = 0
TOOL_PANEL_WIDTH = 220

TOAST_LAYOUT_MARGINS = (10, 6, 10, 6)
TOAST_LAYOUT_SPACING = 6
TOAST_MARGIN_PX = 16
TOAST_TOP_OFFSET_PX = 8
TOAST_DEFAULT_DURATION_MS = 2200

# Placeholder canvas drawn while no plan image is available.
PLACEHOLDER_SIZE = (2400, 1600)
GRID_SPACING_PX = 50
GRID_COLOR = "#E5E7EB"
CANVAS_BACKGROUND = "#F9FAFB"

VERTEX_DOT_RADIUS = 4
COUNT_DOT_RADIUS = 7
STROKE_WIDTH = 2
SELECTED_STROKE_WIDTH = 4
AREA_FILL_ALPHA = 60
PREVIEW_COLOR = "#EF4444"

# (button id, label) in toolbar order
TOOL_BUTTONS = (
    ("select", "Select"),
    ("line", "Line"),
    ("area", "Area"),
    ("count", "Count"),
    ("text", "Text"),
    ("calibrate", "Calibrate"),
)
