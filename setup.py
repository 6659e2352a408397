"""
DashDocs setup.py — Package configuration and CLI entry point.
"""

from setuptools import find_packages, setup

setup(
    name="dashdocs",
    version="1.0.0",
    description="DashDocs — document access control and lifecycle engine",
    packages=find_packages(include=["dashdocs", "dashdocs.*"]),
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "dashdocs=dashdocs.cli:main",
        ],
    },
    install_requires=[
        "sqlalchemy>=2.0",
        "psycopg2-binary>=2.9",
        "pydantic>=2.5",
        "redis>=5.0",
        "celery[redis]>=5.3",
        "kombu>=5.3",
        "pyyaml>=6.0",
        "httpx>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
        ],
    },
)
