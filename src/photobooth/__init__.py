"""Photo-booth kiosk: WiFi camera control, live preview, countdown capture, printing."""

__version__ = "0.1.0"
