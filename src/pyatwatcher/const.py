"""Constants for pyatwatcher."""

# Base URL of the unlock backend (only reachable over mutual TLS)
BASE_URL = "https://192.168.26.43"

# API Endpoints
DEVICE_LIST_ENDPOINT = "/api/atvunlock/list"
DEVICE_LIST_URL = BASE_URL + DEVICE_LIST_ENDPOINT

# Only GET is used against the backend
SUPPORTED_METHODS = ("GET",)

# Seconds before the transport gives up on a connection attempt.
# None leaves the total request time unbounded.
CONNECT_TIMEOUT = 10
REQUEST_TIMEOUT = None

# Wire keys of the device list payload
KEY_SMART = "smart"
KEY_DEVICES = "devices"
KEY_BUILDING = "building"
KEY_LEVELS = "levels"
KEY_LEVEL = "level"
KEY_DEVICE_ID = "UDID"
KEY_DEVICE_ID_ALIAS = "id"
KEY_DEVICE_NAME = "name"
KEY_DEVICE_ROOM = "room"

# Selection steps: building, level, device, confirmation
STEP_BUILDING = 0
STEP_LEVEL = 1
STEP_DEVICE = 2
STEP_CONFIRM = 3
STEP_COUNT = 4
# Step value while the feedback animation hides the progress indicator
STEP_HIDDEN = -1

# Feedback animation timings (seconds)
FEEDBACK_ROUNDS = 4
FEEDBACK_ON_DURATION = 0.075
FEEDBACK_OFF_DURATION = 0.025
