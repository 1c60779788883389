"""
Quick Thoughts capture client: records a clip, sends it for transcription,
and keeps the user's memo list in sync with the server.
"""
