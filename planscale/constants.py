APP_NAME = "PlanScale Takeoff"
HTTP_CONNECT_TIMEOUT_SEC = 10
HTTP_READ_TIMEOUT_SEC = 45
HTTP_GET_RETRIES = 1
HTTP_WRITE_RETRIES = 2
HTTP_WRITE_BACKOFF_SEC = 0.5
HTTP_MAX_RETRY_AFTER_SEC = 30

INCHES_PER_FOOT = 12.0
INCHES_PER_METER = 39.37007874015748
CM_PER_INCH = 2.54
MM_PER_INCH = 25.4

# Plan rasters are treated as 96 px per drawing inch when a preset is used.
PLAN_PIXELS_PER_INCH = 96.0

ZOOM_MIN = 0.1
ZOOM_MAX = 5.0
ZOOM_STEP = 1.2

MIN_CALIBRATION_PIXELS = 0.5
DRAG_THRESHOLD_PX = 4.0
POINT_MERGE_TOLERANCE_PX = 1e-6

CALIBRATION_UNITS = ("ft", "m", "in", "cm")
LINE_INTERACTION_CLICK = "click"
LINE_INTERACTION_DRAG = "drag"

SCALE_PRESETS = {
    "1\" = 1'-0\"": 96.0,
    "3/4\" = 1'-0\"": 72.0,
    "1/2\" = 1'-0\"": 48.0,
    "3/8\" = 1'-0\"": 36.0,
    "1/4\" = 1'-0\"": 24.0,
    "3/16\" = 1'-0\"": 18.0,
    "1/8\" = 1'-0\"": 12.0,
    "3/32\" = 1'-0\"": 9.0,
    "1/16\" = 1'-0\"": 6.0,
    "1\" = 10'": 9.6,
    "1\" = 20'": 4.8,
    "1\" = 30'": 3.2,
    "1\" = 40'": 2.4,
    "1\" = 50'": 1.92,
    "1\" = 60'": 1.6,
    "1\" = 100'": 0.96,
}
DEFAULT_SCALE_PRESET = "1/4\" = 1'-0\""

TOOL_COLORS = {
    "line": "#2563EB",
    "area": "#22C55E",
    "count": "#F59E0B",
    "text": "#8B5CF6",
    "select": "#6B7280",
    "calibrate": "#EF4444",
}
SELECTED_COLOR = "#F59E0B"

LAYERS = (
    "General",
    "Foundation",
    "Framing",
    "Electrical",
    "Plumbing",
    "HVAC",
    "Finishes",
    "Site Work",
)
DEFAULT_LAYER = "General"

# (division, subcategory) assigned to new measurements by type
DEFAULT_CLASSIFICATION = {
    "line": ("03", "Foundation"),
    "area": ("03", "Foundation"),
    "count": ("08", "Openings"),
    "text": ("00", "Notes"),
}

DIVISIONS = {
    "00": "Project Soft Costs",
    "01": "General Requirements",
    "02": "Site Construction",
    "03": "Concrete",
    "04": "Masonry",
    "05": "Metals",
    "06": "Wood, Plastics, and Composites",
    "07": "Thermal and Moisture Protection",
    "08": "Openings",
    "09": "Finishes",
    "10": "Specialties",
    "11": "Equipment",
    "12": "Furnishings",
    "13": "Special Construction",
    "14": "Conveying Equipment",
    "15": "HVAC and Plumbing",
    "16": "Electrical",
    "17": "Allowances",
    "21": "Fire Suppression",
    "22": "Plumbing",
    "23": "Heating, Ventilating, and Air Conditioning",
    "26": "Electrical",
    "27": "Communications",
    "28": "Electronic Safety and Security",
    "31": "Earthwork",
    "32": "Exterior Improvements",
    "33": "Utilities",
}

CALIBRATION_QUEUE_KEY = "calibration"
