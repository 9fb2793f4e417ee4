"""Pipeline stages applied to every inbound request."""

from .admission import AdmissionControl
from .base import Stage
from .compression import ResponseCompression
from .cors import CrossOriginPolicy
from .security_headers import SecurityHeaders

__all__ = [
    "AdmissionControl",
    "CrossOriginPolicy",
    "ResponseCompression",
    "SecurityHeaders",
    "Stage",
]
