# backend/sparkleap/utils/__init__.py
