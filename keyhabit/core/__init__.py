"""Host-independent policy engines."""
