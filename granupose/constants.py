"""Landmark, signal and address tables shared by the mapping pipeline."""

# MediaPipe Pose landmarks (33 total)
MP_LANDMARK_NAMES = [
    'NOSE', 'LEFT_EYE_INNER', 'LEFT_EYE', 'LEFT_EYE_OUTER',
    'RIGHT_EYE_INNER', 'RIGHT_EYE', 'RIGHT_EYE_OUTER',
    'LEFT_EAR', 'RIGHT_EAR', 'MOUTH_LEFT', 'MOUTH_RIGHT',
    'LEFT_SHOULDER', 'RIGHT_SHOULDER', 'LEFT_ELBOW', 'RIGHT_ELBOW',
    'LEFT_WRIST', 'RIGHT_WRIST', 'LEFT_PINKY', 'RIGHT_PINKY',
    'LEFT_INDEX', 'RIGHT_INDEX', 'LEFT_THUMB', 'RIGHT_THUMB',
    'LEFT_HIP', 'RIGHT_HIP', 'LEFT_KNEE', 'RIGHT_KNEE',
    'LEFT_ANKLE', 'RIGHT_ANKLE', 'LEFT_HEEL', 'RIGHT_HEEL',
    'LEFT_FOOT_INDEX', 'RIGHT_FOOT_INDEX'
]

MP_NAME_TO_INDEX = {name: i for i, name in enumerate(MP_LANDMARK_NAMES)}

# COCO keypoint format (17 landmarks) - used by YOLO, HRNET, Sapiens, MMPose
COCO_LANDMARK_NAMES = [
    'NOSE', 'LEFT_EYE', 'RIGHT_EYE', 'LEFT_EAR', 'RIGHT_EAR',
    'LEFT_SHOULDER', 'RIGHT_SHOULDER', 'LEFT_ELBOW', 'RIGHT_ELBOW',
    'LEFT_WRIST', 'RIGHT_WRIST', 'LEFT_HIP', 'RIGHT_HIP',
    'LEFT_KNEE', 'RIGHT_KNEE', 'LEFT_ANKLE', 'RIGHT_ANKLE'
]

# ── Pose signals ─────────────────────────────────────────────────────────
# Each signal reads one axis of one landmark, except shoulderSpan which is
# the scaled distance between both shoulders.

POSE_SIGNAL_IDS = (
    "rightWristY",
    "leftWristY",
    "rightWristX",
    "leftWristX",
    "rightElbowY",
    "leftElbowY",
    "noseY",
    "shoulderSpan",
)

POSE_SIGNAL_LABELS = {
    "rightWristY": "Right Wrist Y",
    "leftWristY": "Left Wrist Y",
    "rightWristX": "Right Wrist X",
    "leftWristX": "Left Wrist X",
    "rightElbowY": "Right Elbow Y",
    "leftElbowY": "Left Elbow Y",
    "noseY": "Nose Y",
    "shoulderSpan": "Shoulder Span",
}

# signal -> (MediaPipe landmark name, axis)
POINT_SIGNAL_SOURCES = {
    "rightWristY": ("RIGHT_WRIST", "y"),
    "leftWristY": ("LEFT_WRIST", "y"),
    "rightWristX": ("RIGHT_WRIST", "x"),
    "leftWristX": ("LEFT_WRIST", "x"),
    "rightElbowY": ("RIGHT_ELBOW", "y"),
    "leftElbowY": ("LEFT_ELBOW", "y"),
    "noseY": ("NOSE", "y"),
}

SHOULDER_SPAN_GAIN = 2.5

# Observation windows tuned for upper-body camera framing, so ordinary
# gestures sweep most of the unit interval.
# signal -> (observation_min, observation_max, response_exponent)
SIGNAL_CALIBRATION = {
    "rightWristY": (0.18, 0.88, 0.9),
    "leftWristY": (0.18, 0.88, 0.9),
    "rightWristX": (0.12, 0.88, 1.0),
    "leftWristX": (0.12, 0.88, 1.0),
    "rightElbowY": (0.2, 0.82, 0.95),
    "leftElbowY": (0.2, 0.82, 0.95),
    "noseY": (0.34, 0.74, 0.85),
    "shoulderSpan": (0.22, 0.68, 1.05),
}

# ── EC2 parameters ───────────────────────────────────────────────────────

EC2_PARAM_IDS = (
    "grainRate",
    "asynchronicity",
    "intermittency",
    "streams",
    "playbackRate",
    "filterCenter",
    "resonance",
    "soundFile",
    "scanBegin",
    "scanRange",
    "scanSpeed",
    "grainDuration",
    "envelopeShape",
    "pan",
    "amplitude",
)

EC2_PARAM_GROUPS = ("timing", "pitchFilter", "sourceScanning", "amplitudeSpaceTime")
EC2_PARAM_UNITS = ("Hz", "ms", "dB", "ratio", "index", "normalized", "count")
SCALING_MODES = ("linear", "log")

EC2_OSC_ADDRESS_BY_PARAM_ID = {
    "grainRate": "/GrainRate",
    "asynchronicity": "/Asynchronicity",
    "intermittency": "/Intermittency",
    "streams": "/Streams",
    "playbackRate": "/PlaybackRate",
    "filterCenter": "/FilterCenter",
    "resonance": "/Resonance",
    "soundFile": "/SoundFile",
    "scanBegin": "/ScanBegin",
    "scanRange": "/ScanRange",
    "scanSpeed": "/ScanSpeed",
    "grainDuration": "/GrainDuration",
    "envelopeShape": "/EnvelopeShape",
    "pan": "/Pan",
    "amplitude": "/Amplitude",
}

# ── Output channels ──────────────────────────────────────────────────────

OSC_OUTPUT_PREFIX = "/pose/out"
OSC_GESTURE_TRIGGER_PREFIX = "/pose/trig"

DEFAULT_OUTPUT_CHANNEL_COUNT = 16
MAX_OUTPUT_CHANNEL_COUNT = 32
OUTPUT_VALUE_MIN = 0.0
OUTPUT_VALUE_MAX = 1.0

# ── Telemetry ────────────────────────────────────────────────────────────

TELEMETRY_SCAN_ADDRESS = "/ec2/telemetry/scan"
MAX_TELEMETRY_GRAINS = 2048
