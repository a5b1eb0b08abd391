"""Screen-time gate, parental override and their timers."""

from kids_gate.gate.override import AttentionAlert, ParentalOverrideGate
from kids_gate.gate.session_gate import SessionGate
from kids_gate.gate.timers import DelayedCall, PeriodicTicker

__all__ = [
    "AttentionAlert",
    "DelayedCall",
    "ParentalOverrideGate",
    "PeriodicTicker",
    "SessionGate",
]
