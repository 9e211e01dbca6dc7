"""Command-line tools: headless recording and playback."""
