"""EDSDK numeric codes used by the session core.

Values mirror the EDSDK headers (EDSDKTypes.h / EDSDKErrors.h); only the
subset the core needs is listed here.
"""

ERR_OK = 0x00000000

# Event masks passed to the Set*EventHandler calls
PROPERTY_EVENT_ALL = 0x00000100
OBJECT_EVENT_ALL = 0x00000200
STATE_EVENT_ALL = 0x00000300

OBJECT_EVENT_DIR_ITEM_REQUEST_TRANSFER = 0x00000208

# Properties
PROP_ID_SAVE_TO = 0x0000000B
PROP_ID_DRIVE_MODE = 0x00000401

SAVE_TO_HOST = 2

DRIVE_MODE_CONTINUOUS = 0x00000001

# Commands
CAMERA_COMMAND_PRESS_SHUTTER_BUTTON = 0x00000004
SHUTTER_BUTTON_OFF = 0x00000000
SHUTTER_BUTTON_COMPLETELY = 0x00000003

# File streams
FILE_CREATE_DISPOSITION_CREATE_ALWAYS = 1
ACCESS_WRITE = 1

# Capacity hint sent before each capture so the body does not refuse to shoot
DEFAULT_FREE_CLUSTERS = 0x7FFFFFFF
DEFAULT_BYTES_PER_SECTOR = 0x1000
