"""Hardware drivers: cameras and printers, real and digital twin."""
