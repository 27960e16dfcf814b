"""
Location Tracker - Termux-based location relay over SMS
=======================================================

Runs in the background on an Android device (via Termux), samples
the device position at a fixed minimum interval and texts each fix,
with a map link, to one configured phone number.

Author: Location Tracker Team
License: MIT
Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Location Tracker Team"
__license__ = "MIT"
