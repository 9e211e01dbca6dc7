#!/usr/bin/env python3
"""
Convenience entry point for headless boids recording.

Usage:
    python record.py my_run                 # Start new recording
    python record.py my_run --resume        # Resume interrupted recording
    python record.py my_run --status        # Check recording status
    python record.py --list                 # List all recordings
"""

from tools.record import main

if __name__ == "__main__":
    main()
