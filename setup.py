"""Setup script for the Lynxa Pro API backend"""

from setuptools import setup, find_packages

setup(
    name="lynxa-backend",
    version="1.0.0",
    description="API key issuance, validation and usage accounting for the Lynxa Pro chat API",
    packages=find_packages(include=["lynxa", "lynxa.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.100.0",
        "uvicorn[standard]>=0.23.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "sqlalchemy[asyncio]>=2.0.0",
        "asyncpg>=0.29.0",
        "alembic>=1.12.0",
        "redis>=5.0.1",
        "httpx>=0.25.0",
        "structlog>=23.1.0",
        "python-jose[cryptography]>=3.3.0",
        "prometheus-client>=0.18.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "hypothesis>=6.90.0",
            "aiosqlite>=0.19.0",
        ]
    },
)
