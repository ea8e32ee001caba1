# app/trade/__init__.py
