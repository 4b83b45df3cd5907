"""
Run the Instagram DM bot locally: python run.py

Installed deployments use the ``instagram-dm-bot`` console script instead.
"""

from app.main import serve

if __name__ == "__main__":
    serve()
