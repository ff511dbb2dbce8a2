"""PulseLink care service: senior identities, caregiver relations and health records."""

__version__ = "1.0.0"
