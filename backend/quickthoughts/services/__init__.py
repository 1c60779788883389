# Services package init
"""
Quick Thoughts Backend: Services Layer
========================================

Service Inventory:
    - prompt_builder:        classification prompt + Gemini request contents
    - response_parser:       fence stripping, JSON parsing, thought validation
    - llm_base:              TranscriptionModel interface
    - gemini_service:        Gemini implementation with circuit breaker
    - transcription_service: validate → constrain → call → parse orchestration
    - memo_service:          folders, onboarding and memo CRUD scoped by user
"""
