"""
News Module
===========

Ingestion pipeline for news articles:
- RSS feed polling
- Content extraction from article pages
- Title/description rewriting through a chat-completion service
- Idempotent Firestore persistence keyed by URL
- Background worker for scheduled and manual runs
"""
