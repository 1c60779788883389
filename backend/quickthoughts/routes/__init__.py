# Routes package init
"""
Quick Thoughts Backend: API Routes Package
============================================

Route Inventory:
    - transcribe.py: POST   /api/transcribe     (clip → transcription + thoughts)
    - folders.py:    GET    /api/folders        (classification vocabulary)
                     POST   /api/onboarding     (username + initial folders)
    - memos.py:      GET    /api/memos
                     POST   /api/memos
                     DELETE /api/memos/{id}
    - health.py:     GET    /health

Routes stay thin: extract the request data, call a service, return its result.
Errors are raised as QuickThoughtsError subclasses and formatted by the
handlers registered in main.py.
"""
