"""
homefs: read-only web browser for a single home directory
Built with FastAPI + Uvicorn + Jinja2
"""

__version__ = "1.0.0"
__author__ = "homefs"
__description__ = "Read-only directory browser and file download server"
