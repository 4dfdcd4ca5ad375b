"""Control, fault-management and scheduling logic for an LLC power supply."""

__version__ = "0.1.0"
__all__ = [
    "common",
    "control",
    "fault",
    "fault_detect",
    "scheduler",
    "state_machine",
    "version",
]